"""Application service helpers."""

from .watch_party import (
    get_watch_party_service,
    set_watch_party_service,
    shutdown_watch_party,
    startup_watch_party,
)
from .watch_store import SqlWatchPartyStore

__all__ = [
    "SqlWatchPartyStore",
    "get_watch_party_service",
    "set_watch_party_service",
    "startup_watch_party",
    "shutdown_watch_party",
]
