from __future__ import annotations

from enum import Enum


class MediaMode(str, Enum):
    """Kinds of media a room host can put on the shared screen."""

    YOUTUBE = "youtube"
    FILE = "file"
    SCREEN = "screen"


class RoomVisibility(str, Enum):
    """Whether a room is advertised in the public directory."""

    PUBLIC = "public"
    PRIVATE = "private"


class FriendRequestStatus(str, Enum):
    """Lifecycle states for friend relationships."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class PresenceStatus(str, Enum):
    """Presence values clients commonly report through ``updateStatus``."""

    ONLINE = "online"
    WATCHING = "watching"
    IDLE = "idle"
    OFFLINE = "offline"
