"""Pydantic schemas for party events and HTTP responses."""

from .party import (
    ChatMessagePayload,
    CreateRoomPayload,
    JoinRoomPayload,
    LoadFilePayload,
    LoadVideoPayload,
    PartyPayload,
    ReactionPayload,
    ScreenSharePayload,
    UpdateStatusPayload,
    room_code_from,
)
from .rooms import PublicRoomRead

__all__ = [
    "PartyPayload",
    "JoinRoomPayload",
    "CreateRoomPayload",
    "LoadVideoPayload",
    "LoadFilePayload",
    "ScreenSharePayload",
    "ChatMessagePayload",
    "ReactionPayload",
    "UpdateStatusPayload",
    "PublicRoomRead",
    "room_code_from",
]
