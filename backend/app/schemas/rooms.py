"""Schemas for the public room directory."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PublicRoomRead(BaseModel):
    """Listing entry advertised to every connected client."""

    model_config = ConfigDict(populate_by_name=True)

    room_code: str = Field(..., alias="roomCode")
    title: str = Field(..., description="Room name chosen by the host")
    host: str = Field(..., description="Display name of the host")
    users: int = Field(default=0, ge=0, description="Connections currently in the room")
    max: int = Field(default=8, ge=1, description="Advertised capacity")
    status: str = Field(default="live")
