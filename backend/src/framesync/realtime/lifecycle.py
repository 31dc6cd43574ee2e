"""Room membership transitions and the side effects tied to them."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from app.models.enums import RoomVisibility
from app.monitoring.metrics import public_rooms
from app.schemas.party import (
    ChatMessagePayload,
    CreateRoomPayload,
    IdentityHints,
    JoinRoomPayload,
    ReactionPayload,
    UpdateStatusPayload,
)

from .collaborators import BestEffortRunner, Identity, IdentityRejected, WatchPartyStore
from .directory import RoomDirectory, normalise_capacity
from .emitter import Emitter, system_message
from .registry import Connection, ConnectionRegistry, PresenceStatusBook
from .sync import SynchronizationEngine

logger = logging.getLogger(__name__)


class RoomLifecycleManager:
    """Join, create, leave and disconnect handling for party rooms.

    A room exists while its code has a group or a listing.  When the host
    leaves or drops, every other member receives ``roomEnded`` once and all
    in-memory state for the code is removed, so a later join with the same
    code starts from nothing.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        statuses: PresenceStatusBook,
        directory: RoomDirectory,
        engine: SynchronizationEngine,
        emitter: Emitter,
        store: WatchPartyStore,
        runner: BestEffortRunner,
        *,
        default_capacity: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._statuses = statuses
        self._directory = directory
        self._engine = engine
        self._emitter = emitter
        self._store = store
        self._runner = runner
        self._default_capacity = default_capacity
        self._clock = clock

    # Identity ---------------------------------------------------------------

    async def _resolve_identity(
        self, connection: Connection, hints: IdentityHints
    ) -> Identity | None:
        if not hints.token and not hints.email:
            return None
        try:
            return await self._runner.run(
                "identity lookup",
                self._store.resolve_identity,
                hints.token,
                hints.email,
                fallback=None,
                passthrough=(IdentityRejected,),
            )
        except IdentityRejected as exc:
            logger.info("Rejected credentials on %s: %s", connection.sid, exc)
            await self._emitter.to_connection(connection, "authError", {"message": str(exc)})
            return None

    # Directory --------------------------------------------------------------

    async def broadcast_directory(self) -> int:
        public_rooms.set(len(self._directory))
        return await self._emitter.to_all("publicRoomsList", self._directory.snapshot())

    async def _refresh_listing(self, room_code: str) -> None:
        if self._directory.update_count(room_code, len(self._registry.members(room_code))):
            await self.broadcast_directory()

    async def public_rooms(self, connection: Connection) -> bool:
        return await self._emitter.to_connection(
            connection, "publicRoomsList", self._directory.snapshot()
        )

    # Transitions ------------------------------------------------------------

    async def create_room(self, connection: Connection, payload: CreateRoomPayload) -> dict[str, Any]:
        room_code = payload.room_code
        is_public = payload.type is RoomVisibility.PUBLIC
        identity = await self._resolve_identity(connection, payload)
        if identity is not None:
            await self._runner.run(
                "room registration",
                self._store.register_room,
                room_code,
                identity.user_id,
                is_public,
                fallback=None,
            )

        if is_public:
            self._directory.publish(
                room_code,
                title=payload.name or f"{payload.user_name}'s room",
                host=payload.user_name,
                capacity=normalise_capacity(payload.capacity, self._default_capacity),
            )
            self._directory.update_count(room_code, len(self._registry.members(room_code)))
            await self.broadcast_directory()

        logger.info("Room %s created by %s (public=%s)", room_code, connection.sid, is_public)
        return {"success": True, "roomCode": room_code}

    async def join_room(self, connection: Connection, payload: JoinRoomPayload) -> None:
        room_code = payload.room_code
        identity = await self._resolve_identity(connection, payload)
        if connection.joined_at is not None:
            await self._account_watch_time(connection)
        previous = connection.room_code
        if previous is not None and previous != room_code:
            await self._exit(connection, previous)
            connection.room_code = None

        connection.display_name = payload.user_name
        connection.room_code = room_code
        connection.is_host = payload.is_host
        connection.user_id = identity.user_id if identity else None
        connection.avatar = identity.avatar if identity else None
        connection.joined_at = self._clock()
        self._registry.enter_group(connection.sid, room_code)
        logger.info(
            "%s joined room %s (host=%s, user=%s)",
            connection.sid,
            room_code,
            connection.is_host,
            connection.user_id,
        )

        if connection.user_id is not None:
            await self._befriend_members(connection)

        await self._emitter.to_room(room_code, "updateUsers", self._registry.roster(room_code))
        await self._refresh_listing(room_code)
        await self._emitter.to_connection(
            connection, "chatMessage", system_message(f"Welcome to room {room_code}!")
        )
        await self._emitter.to_room(
            room_code,
            "chatMessage",
            system_message(f"{connection.display_name} has joined."),
            exclude={connection.sid},
        )
        await self._engine.request_initial_sync(connection)

    async def leave_room(self, connection: Connection, room_code: str) -> dict[str, Any]:
        await self._account_watch_time(connection)
        await self._exit(connection, room_code)
        if connection.room_code == room_code:
            connection.room_code = None
        return {"success": True}

    async def disconnect(self, connection: Connection) -> None:
        if connection.user_id is not None:
            self._statuses.mark_offline(connection.user_id)
        await self._account_watch_time(connection)
        try:
            if connection.room_code is not None:
                await self._exit(connection, connection.room_code)
        finally:
            self._registry.unregister(connection.sid)
        logger.info("%s disconnected", connection.sid)

    async def _exit(self, connection: Connection, room_code: str) -> None:
        if connection.is_host:
            await self._end_room(connection, room_code)
        else:
            await self._guest_exit(connection, room_code)

    async def _end_room(self, host: Connection, room_code: str) -> None:
        members = [member for member in self._registry.clear_group(room_code) if member.sid != host.sid]
        self._engine.forget(room_code)
        listed = self._directory.remove(room_code)
        logger.info("Host %s ended room %s; removing %d members", host.sid, room_code, len(members))

        for member in members:
            if member.room_code == room_code:
                member.room_code = None
        await asyncio.gather(*(self._account_watch_time(member) for member in members))
        for member in members:
            await self._emitter.to_connection(member, "roomEnded")
        if listed:
            await self.broadcast_directory()

    async def _guest_exit(self, connection: Connection, room_code: str) -> None:
        self._registry.leave_group(connection.sid, room_code)
        await self._emitter.to_room(room_code, "updateUsers", self._registry.roster(room_code))
        await self._emitter.to_room(
            room_code, "chatMessage", system_message(f"{connection.display_name} has left.")
        )
        await self._refresh_listing(room_code)

    # Side effects -----------------------------------------------------------

    async def _befriend_members(self, connection: Connection) -> None:
        friend_ids = {
            member.user_id
            for member in self._registry.members(connection.room_code or "")
            if member.user_id is not None and member.user_id != connection.user_id
        }
        for friend_id in sorted(friend_ids):
            linked = await self._runner.run(
                "friend upsert",
                self._store.upsert_friendship,
                connection.user_id,
                friend_id,
                fallback=False,
            )
            if not linked:
                continue
            await self._emitter.to_connection(
                connection,
                "friendRequestAccepted",
                {"userId": connection.user_id, "friendId": friend_id},
            )
            for member in self._registry.members(connection.room_code or ""):
                if member.user_id == friend_id:
                    await self._emitter.to_connection(
                        member,
                        "friendRequestAccepted",
                        {"userId": friend_id, "friendId": connection.user_id},
                    )

    async def _account_watch_time(self, connection: Connection) -> None:
        started, connection.joined_at = connection.joined_at, None
        if started is None or connection.user_id is None:
            return
        elapsed = int(self._clock() - started)
        if elapsed <= 0:
            return
        await self._runner.run(
            "watch time update",
            self._store.add_watch_time,
            connection.user_id,
            elapsed,
            fallback=None,
        )

    # Room chatter -----------------------------------------------------------

    async def chat_message(self, connection: Connection, payload: ChatMessagePayload) -> int:
        return await self._emitter.to_room(
            payload.room_code,
            "chatMessage",
            {"name": connection.display_name, "text": payload.text},
        )

    async def reaction(self, connection: Connection, payload: ReactionPayload) -> int:
        delivered = await self._emitter.to_room(
            payload.room_code, "reaction", {"emoji": payload.emoji}
        )
        if connection.user_id is not None:
            await self._runner.run(
                "reaction record",
                self._store.record_reaction,
                payload.room_code,
                connection.user_id,
                payload.emoji,
                fallback=None,
            )
        return delivered

    def update_status(self, payload: UpdateStatusPayload) -> dict[str, Any]:
        if payload.user_id is not None:
            self._statuses.set(payload.user_id, payload.status)
        return {"success": True}
