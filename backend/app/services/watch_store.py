"""SQLAlchemy backed persistence for the watch party core.

Every method opens its own short session and commits before returning.  The
methods block, and the realtime core only ever calls them through its
best-effort runner on a worker thread.
"""

from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import TokenValidationError, user_id_from_token
from app.models import FriendLink, FriendRequestStatus, PartyRoom, Reaction, SyncedVideo, User
from framesync.realtime.collaborators import Identity, IdentityRejected

logger = logging.getLogger(__name__)


class SqlWatchPartyStore:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        token_reader: Callable[[str], int] = user_id_from_token,
    ) -> None:
        self._session_factory = session_factory
        self._token_reader = token_reader

    def resolve_identity(self, token: str | None, email: str | None) -> Identity | None:
        """Look up the viewer behind a token, or behind an email when no token is given."""

        with self._session_factory() as db:
            if token:
                try:
                    user_id = self._token_reader(token)
                except TokenValidationError as exc:
                    raise IdentityRejected(str(exc)) from exc
                user = db.get(User, user_id)
                if user is None:
                    logger.warning("Token names unknown user %s; joining as guest", user_id)
                    return None
            elif email:
                user = db.execute(
                    select(User).where(func.lower(User.email) == email.strip().lower())
                ).scalar_one_or_none()
                if user is None:
                    return None
            else:
                return None
            return Identity(user_id=user.id, avatar=user.avatar)

    def register_room(self, room_code: str, host_id: int, is_public: bool) -> None:
        with self._session_factory() as db:
            existing = db.execute(
                select(PartyRoom).where(PartyRoom.code == room_code)
            ).scalar_one_or_none()
            if existing is not None:
                return
            db.add(PartyRoom(code=room_code, host_id=host_id, is_public=is_public))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.debug("Room %s registered concurrently", room_code)

    def upsert_friendship(self, user_id: int, friend_id: int) -> bool:
        """Mark both directions of the pair as accepted friends.

        Safe to call repeatedly: a pair never gets more than one row per
        direction.  A concurrent insert of the same row is retried once as an
        update.
        """

        for attempt in range(2):
            with self._session_factory() as db:
                for owner, other in ((user_id, friend_id), (friend_id, user_id)):
                    link = db.execute(
                        select(FriendLink).where(
                            FriendLink.user_id == owner, FriendLink.friend_id == other
                        )
                    ).scalar_one_or_none()
                    if link is None:
                        db.add(
                            FriendLink(
                                user_id=owner,
                                friend_id=other,
                                status=FriendRequestStatus.ACCEPTED,
                            )
                        )
                    elif link.status != FriendRequestStatus.ACCEPTED:
                        link.status = FriendRequestStatus.ACCEPTED
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    if attempt:
                        raise
                    continue
                return True
        return False

    def append_history(self, room_code: str, user_id: int, media_type: str, media_id: str) -> None:
        with self._session_factory() as db:
            db.add(
                SyncedVideo(
                    room_code=room_code,
                    user_id=user_id,
                    media_type=media_type,
                    media_id=media_id,
                )
            )
            db.commit()

    def add_watch_time(self, user_id: int, seconds: int) -> None:
        with self._session_factory() as db:
            db.execute(
                update(User)
                .where(User.id == user_id)
                .values(watch_time=User.watch_time + seconds)
            )
            db.commit()

    def record_reaction(self, room_code: str, user_id: int, emoji: str) -> None:
        with self._session_factory() as db:
            db.add(Reaction(room_code=room_code, user_id=user_id, emoji=emoji))
            db.commit()
