"""Persistence collaborators consumed by the realtime core.

The core never talks to a database directly.  It depends on the
:class:`WatchPartyStore` protocol, whose methods are blocking and are always
invoked through :class:`BestEffortRunner`, which moves them onto a worker
thread and bounds them with a timeout.  A timeout or an error yields the
caller-supplied fallback so a slow store can delay a handler but never break
it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Tuple, Type, TypeVar

from app.monitoring.metrics import store_fallbacks_total

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Identity:
    """Stable identity attached to a connection at join time."""

    user_id: int
    avatar: str | None = None


class IdentityRejected(Exception):
    """Raised by a store when the supplied access token is invalid or expired."""


class WatchPartyStore(Protocol):
    def resolve_identity(self, token: str | None, email: str | None) -> Identity | None:
        ...

    def register_room(self, room_code: str, host_id: int, is_public: bool) -> None:
        ...

    def upsert_friendship(self, user_id: int, friend_id: int) -> bool:
        ...

    def append_history(self, room_code: str, user_id: int, media_type: str, media_id: str) -> None:
        ...

    def add_watch_time(self, user_id: int, seconds: int) -> None:
        ...

    def record_reaction(self, room_code: str, user_id: int, emoji: str) -> None:
        ...


class BestEffortRunner:
    """Run blocking store calls off the event loop with a bounded wait."""

    def __init__(self, *, timeout: float) -> None:
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def run(
        self,
        action: str,
        func: Callable[..., T],
        *args: Any,
        fallback: T,
        passthrough: Tuple[Type[BaseException], ...] = (),
    ) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self._timeout)
        except passthrough:
            raise
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs; continuing without it", action, self._timeout)
            store_fallbacks_total.labels(action, "timeout").inc()
        except Exception:
            logger.warning(
                "%s failed; continuing without it",
                action,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            store_fallbacks_total.labels(action, "error").inc()
        return fallback
