"""Process-wide watch party service wired to the configured database."""

from __future__ import annotations

import logging

from app.config import get_settings
from app.database import SessionLocal, create_schema
from app.services.watch_store import SqlWatchPartyStore
from framesync.realtime.service import WatchPartyService

logger = logging.getLogger(__name__)

settings = get_settings()

_service = WatchPartyService(SqlWatchPartyStore(SessionLocal), settings=settings)


def get_watch_party_service() -> WatchPartyService:
    return _service


def set_watch_party_service(service: WatchPartyService) -> WatchPartyService:
    """Swap the process-wide service, returning the previous one."""

    global _service
    previous, _service = _service, service
    return previous


async def startup_watch_party() -> None:
    if settings.database_auto_create:
        try:
            create_schema()
        except Exception:
            logger.exception("Could not create database schema; persistence will fall back")
    await get_watch_party_service().start()


async def shutdown_watch_party() -> None:
    await get_watch_party_service().stop()


__all__ = [
    "get_watch_party_service",
    "set_watch_party_service",
    "startup_watch_party",
    "shutdown_watch_party",
]
