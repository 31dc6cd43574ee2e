"""Outbound fan-out over the connection registry."""

from __future__ import annotations

import logging
from typing import Any, Collection

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_events_total

from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


def envelope(event: str, data: Any = None) -> dict[str, Any]:
    message: dict[str, Any] = {"type": event}
    if data is not None:
        message["data"] = data
    return message


def system_message(text: str) -> dict[str, str]:
    return {"name": "System", "text": text}


class Emitter:
    """Send events to one connection, one room group, or everybody.

    Targets are resolved before the first send, so a member joining while a
    broadcast is in flight waits for the next one.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def _deliver(self, targets: list[Connection], event: str, data: Any) -> int:
        message = envelope(event, data)
        delivered = 0
        for connection in targets:
            if await safe_send_json(connection.websocket, message):
                delivered += 1
        if targets:
            realtime_events_total.labels(event, "out").inc(len(targets))
        return delivered

    async def to_connection(self, connection: Connection, event: str, data: Any = None) -> bool:
        return bool(await self._deliver([connection], event, data))

    async def to_room(
        self,
        room_code: str,
        event: str,
        data: Any = None,
        *,
        exclude: Collection[str] = (),
    ) -> int:
        targets = [
            member for member in self._registry.members(room_code) if member.sid not in exclude
        ]
        return await self._deliver(targets, event, data)

    async def to_all(self, event: str, data: Any = None) -> int:
        return await self._deliver(list(self._registry), event, data)
