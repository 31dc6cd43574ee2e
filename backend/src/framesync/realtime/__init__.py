"""Realtime watch party core: rooms, playback sync and signaling."""

from .collaborators import BestEffortRunner, Identity, IdentityRejected, WatchPartyStore
from .directory import PublicRoom, RoomDirectory
from .emitter import Emitter, safe_send_json
from .lifecycle import RoomLifecycleManager
from .playback import MediaMode, PlaybackState, PlaybackStateStore
from .registry import Connection, ConnectionRegistry, PresenceStatusBook
from .service import MissingRoomCodeError, UnsupportedEventError, WatchPartyService
from .signaling import SignalingRelay
from .sync import SynchronizationEngine

__all__ = [
    "BestEffortRunner",
    "Connection",
    "ConnectionRegistry",
    "Emitter",
    "Identity",
    "IdentityRejected",
    "MediaMode",
    "MissingRoomCodeError",
    "PlaybackState",
    "PlaybackStateStore",
    "PresenceStatusBook",
    "PublicRoom",
    "RoomDirectory",
    "RoomLifecycleManager",
    "SignalingRelay",
    "SynchronizationEngine",
    "UnsupportedEventError",
    "WatchPartyService",
    "WatchPartyStore",
    "safe_send_json",
]
