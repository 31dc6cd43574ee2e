"""Authoritative media descriptor per room."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from app.models.enums import MediaMode

__all__ = ["MediaMode", "PlaybackState", "PlaybackStateStore"]


@dataclass(slots=True)
class PlaybackState:
    mode: MediaMode
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def media_id(self) -> str | None:
        """Identifier recorded in play history for this media."""

        if self.mode is MediaMode.YOUTUBE:
            return self.payload.get("videoId")
        if self.mode is MediaMode.FILE:
            return self.payload.get("filename") or self.payload.get("url")
        return self.payload.get("streamId")

    def to_public(self) -> dict[str, Any]:
        return {"type": self.mode.value, **self.payload}


class PlaybackStateStore:
    """At most one state per room; every load replaces the previous one."""

    def __init__(self) -> None:
        self._states: Dict[str, PlaybackState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, room_code: object) -> bool:
        return room_code in self._states

    def set(self, room_code: str, mode: MediaMode, payload: dict[str, Any]) -> PlaybackState:
        state = PlaybackState(mode=mode, payload=dict(payload))
        self._states[room_code] = state
        return state

    def get(self, room_code: str) -> PlaybackState | None:
        return self._states.get(room_code)

    def discard(self, room_code: str) -> PlaybackState | None:
        return self._states.pop(room_code, None)
