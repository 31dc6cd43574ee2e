"""Database models package."""

from .base import Base
from .enums import FriendRequestStatus, MediaMode, PresenceStatus, RoomVisibility
from .party import FriendLink, PartyRoom, Reaction, SyncedVideo, User

__all__ = [
    "Base",
    "User",
    "FriendLink",
    "PartyRoom",
    "SyncedVideo",
    "Reaction",
    "FriendRequestStatus",
    "MediaMode",
    "PresenceStatus",
    "RoomVisibility",
]
