"""Pass-through relay for peer connection handshakes."""

from __future__ import annotations

import logging
from typing import Any

from .emitter import Emitter
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

SIGNAL_EVENTS = ("offer", "answer", "ice-candidate")


class SignalingRelay:
    """Deliver handshake payloads to the connection named by ``target``.

    Payloads are opaque and forwarded unchanged; an unknown or missing target
    is dropped without telling the sender.
    """

    def __init__(self, registry: ConnectionRegistry, emitter: Emitter) -> None:
        self._registry = registry
        self._emitter = emitter

    async def forward(self, event: str, payload: Any) -> bool:
        if event not in SIGNAL_EVENTS:
            raise ValueError(f"Unsupported signal event: {event}")
        target_sid = payload.get("target") if isinstance(payload, dict) else None
        if not isinstance(target_sid, str):
            return False
        target = self._registry.get(target_sid)
        if target is None:
            logger.debug("Dropping %s for unknown connection %s", event, target_sid)
            return False
        return await self._emitter.to_connection(target, event, payload)

    async def announce_video_join(self, connection: Connection, room_code: str) -> int:
        return await self._emitter.to_room(
            room_code,
            "user-connected-video",
            {"socketId": connection.sid, "name": connection.display_name},
            exclude={connection.sid},
        )

    async def announce_video_leave(self, connection: Connection, room_code: str) -> int:
        return await self._emitter.to_room(
            room_code, "user-disconnected-video", connection.sid, exclude={connection.sid}
        )
