"""Payload models for inbound watch party events."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from app.models.enums import RoomVisibility

RoomCode = constr(strip_whitespace=True, min_length=1, max_length=64)


class PartyPayload(BaseModel):
    """Base for every event addressed to a room.

    Unknown fields are kept so that broadcasts carry whatever the client sent.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    room_code: RoomCode = Field(..., alias="roomCode", description="Code of the target room")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class IdentityHints(PartyPayload):
    user_name: constr(strip_whitespace=True, min_length=1, max_length=64) = Field(
        default="Guest", alias="userName", description="Display name shown to the room"
    )
    token: str | None = Field(default=None, description="Access token of a signed-in viewer")
    email: str | None = Field(default=None, description="Email used when no token is supplied")


class JoinRoomPayload(IdentityHints):
    is_host: bool = Field(default=False, alias="isHost")


class CreateRoomPayload(IdentityHints):
    type: RoomVisibility = Field(default=RoomVisibility.PRIVATE)
    name: str | None = Field(default=None, max_length=128, description="Listing title")
    capacity: Any = Field(default=None, description="Advertised capacity, integer-like")

    @field_validator("type", mode="before")
    @classmethod
    def unknown_types_are_private(cls, value: Any) -> RoomVisibility:
        if isinstance(value, RoomVisibility):
            return value
        if isinstance(value, str) and value.strip().lower() == RoomVisibility.PUBLIC.value:
            return RoomVisibility.PUBLIC
        return RoomVisibility.PRIVATE


class LoadVideoPayload(PartyPayload):
    video_id: constr(strip_whitespace=True, min_length=1, max_length=64) = Field(..., alias="videoId")


class LoadFilePayload(PartyPayload):
    url: constr(min_length=1, max_length=2048)
    subtitle_url: str | None = Field(default=None, alias="subtitleUrl")
    filename: str | None = Field(default=None, max_length=512)


class ScreenSharePayload(PartyPayload):
    stream_id: str | None = Field(default=None, alias="streamId")


class ChatMessagePayload(PartyPayload):
    text: constr(strip_whitespace=True, min_length=1, max_length=2000)


class ReactionPayload(PartyPayload):
    emoji: constr(strip_whitespace=True, min_length=1, max_length=32)


class UpdateStatusPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int | str | None = Field(default=None, alias="userId")
    status: constr(strip_whitespace=True, min_length=1, max_length=32)


def room_code_from(data: Any) -> str | None:
    """Accept either a bare room code or an object carrying ``roomCode``."""

    if isinstance(data, dict):
        data = data.get("roomCode")
    if isinstance(data, str) and data.strip():
        return data.strip()
    return None
