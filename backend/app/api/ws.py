"""WebSocket gateway for watch party clients."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState
from pydantic import ValidationError

from app.config import get_settings
from app.services.watch_party import get_watch_party_service
from framesync.realtime.emitter import safe_send_json
from framesync.realtime.service import MissingRoomCodeError, UnsupportedEventError

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or {"type": "ping"}
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            idle_long_enough = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if idle_long_enough:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def _send_error(websocket: WebSocket, detail: str) -> None:
    await safe_send_json(websocket, {"type": "error", "data": {"detail": detail}})


def _describe_validation_error(event: str, exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"Invalid {event} payload: {location} {first.get('msg', 'is invalid')}".strip()


@router.websocket("/party")
async def websocket_party(websocket: WebSocket) -> None:
    """Bidirectional event stream for one watch party client.

    Frames are JSON objects ``{"type", "data", "ack"}``; each is handled to
    completion before the next one is read, so a client's events apply in the
    order they were sent.
    """

    service = get_watch_party_service()
    await websocket.accept()
    connection = service.connect(websocket)
    await safe_send_json(websocket, {"type": "connected", "data": {"socketId": connection.sid}})

    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            if len(raw_message) > settings.websocket_max_message_bytes:
                await _send_error(websocket, "Message too large")
                continue

            try:
                message = json.loads(raw_message)
            except json.JSONDecodeError:
                await _send_error(websocket, "Invalid message format")
                continue

            if not isinstance(message, dict):
                await _send_error(websocket, "Message payload must be a JSON object")
                continue

            event = message.get("type")
            if not isinstance(event, str) or not event:
                await _send_error(websocket, "Message type must be provided")
                continue
            if event == "ping":
                await safe_send_json(websocket, {"type": "pong"})
                continue
            if event == "pong":
                continue

            try:
                result = await service.dispatch(connection, event, message.get("data"))
            except UnsupportedEventError:
                await _send_error(websocket, f"Unsupported event: {event}")
                continue
            except ValidationError as exc:
                await _send_error(websocket, _describe_validation_error(event, exc))
                continue
            except MissingRoomCodeError as exc:
                await _send_error(websocket, str(exc))
                continue
            except Exception:
                logger.exception("Unhandled error while processing %s from %s", event, connection.sid)
                await _send_error(websocket, "Internal server error")
                continue

            ack_id = message.get("ack")
            if ack_id is not None and result is not None:
                await safe_send_json(websocket, {"type": "ack", "ack": ack_id, "data": result})
    except WebSocketDisconnect:
        pass
    finally:
        await service.disconnect(connection)
