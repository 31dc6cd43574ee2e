"""The watch party service: one object owning every piece of realtime state."""

from __future__ import annotations

import logging
import time
from functools import partial
from typing import Any, Awaitable, Callable, Dict

from fastapi.websockets import WebSocket

from app.models.enums import MediaMode
from app.monitoring.metrics import realtime_connections, realtime_events_total
from app.schemas.party import (
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

from .collaborators import BestEffortRunner, WatchPartyStore
from .directory import RoomDirectory
from .emitter import Emitter
from .lifecycle import RoomLifecycleManager
from .playback import PlaybackStateStore
from .registry import Connection, ConnectionRegistry, PresenceStatusBook
from .signaling import SIGNAL_EVENTS, SignalingRelay
from .sync import SynchronizationEngine

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[Any]]


class UnsupportedEventError(Exception):
    """Raised when a client sends an event name the service does not handle."""

    def __init__(self, event: str) -> None:
        super().__init__(f"Unsupported event: {event}")
        self.event = event


class MissingRoomCodeError(ValueError):
    """Raised for room scoped events that do not name a room."""


class WatchPartyService:
    """Entry point used by the websocket gateway.

    ``dispatch`` returns the acknowledgement payload for events that have one
    and ``None`` otherwise.  Payload validation errors propagate to the caller
    as :class:`pydantic.ValidationError`.
    """

    def __init__(
        self,
        store: WatchPartyStore,
        *,
        settings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.registry = ConnectionRegistry()
        self.statuses = PresenceStatusBook()
        self.directory = RoomDirectory()
        self.playback = PlaybackStateStore()
        self.emitter = Emitter(self.registry)
        self.runner = BestEffortRunner(timeout=settings.store_timeout_seconds)
        self.engine = SynchronizationEngine(
            self.registry,
            self.emitter,
            self.playback,
            store,
            self.runner,
            pulse_interval=settings.drift_pulse_interval_seconds,
            enforce_host_authority=settings.enforce_host_authority,
        )
        self.lifecycle = RoomLifecycleManager(
            self.registry,
            self.statuses,
            self.directory,
            self.engine,
            self.emitter,
            store,
            self.runner,
            default_capacity=settings.public_room_default_capacity,
            clock=clock,
        )
        self.signaling = SignalingRelay(self.registry, self.emitter)
        self._handlers: Dict[str, Handler] = {
            "joinRoom": self._on_join_room,
            "createRoom": self._on_create_room,
            "leaveRoom": self._on_leave_room,
            "updateStatus": self._on_update_status,
            "loadVideo": self._on_load_video,
            "loadFile": self._on_load_file,
            "startScreenShare": self._on_start_screen_share,
            "stopScreenShare": self._on_stop_screen_share,
            "videoState": self._on_video_state,
            "chatMessage": self._on_chat_message,
            "reaction": self._on_reaction,
            "getPublicRooms": self._on_get_public_rooms,
            "join-video": self._on_join_video,
            "leave-video": self._on_leave_video,
        }
        for event in SIGNAL_EVENTS:
            self._handlers[event] = partial(self._on_signal, event)

    async def start(self) -> None:
        await self.engine.start()

    async def stop(self) -> None:
        await self.engine.stop()

    def connect(self, websocket: WebSocket) -> Connection:
        connection = self.registry.register(websocket)
        realtime_connections.labels("party").set(len(self.registry))
        return connection

    async def disconnect(self, connection: Connection) -> None:
        try:
            await self.lifecycle.disconnect(connection)
        finally:
            realtime_connections.labels("party").set(len(self.registry))

    async def dispatch(self, connection: Connection, event: str, data: Any) -> Any:
        handler = self._handlers.get(event)
        if handler is None:
            raise UnsupportedEventError(event)
        realtime_events_total.labels(event, "in").inc()
        return await handler(connection, data)

    # Handlers -----------------------------------------------------------------

    async def _on_join_room(self, connection: Connection, data: Any) -> None:
        await self.lifecycle.join_room(connection, JoinRoomPayload.model_validate(data))

    async def _on_create_room(self, connection: Connection, data: Any) -> dict[str, Any]:
        return await self.lifecycle.create_room(connection, CreateRoomPayload.model_validate(data))

    async def _on_leave_room(self, connection: Connection, data: Any) -> dict[str, Any]:
        room_code = room_code_from(data)
        if room_code is None:
            raise MissingRoomCodeError("leaveRoom requires a room code")
        return await self.lifecycle.leave_room(connection, room_code)

    async def _on_update_status(self, connection: Connection, data: Any) -> dict[str, Any]:
        return self.lifecycle.update_status(UpdateStatusPayload.model_validate(data))

    async def _on_load_video(self, connection: Connection, data: Any) -> None:
        payload = LoadVideoPayload.model_validate(data)
        await self.engine.load_media(payload.room_code, MediaMode.YOUTUBE, payload.to_wire(), connection)

    async def _on_load_file(self, connection: Connection, data: Any) -> None:
        payload = LoadFilePayload.model_validate(data)
        await self.engine.load_media(payload.room_code, MediaMode.FILE, payload.to_wire(), connection)

    async def _on_start_screen_share(self, connection: Connection, data: Any) -> None:
        payload = ScreenSharePayload.model_validate(data)
        await self.engine.load_media(payload.room_code, MediaMode.SCREEN, payload.to_wire(), connection)

    async def _on_stop_screen_share(self, connection: Connection, data: Any) -> None:
        payload = PartyPayload.model_validate(data)
        await self.engine.stop_screen_share(payload.room_code, connection)

    async def _on_video_state(self, connection: Connection, data: Any) -> None:
        payload = PartyPayload.model_validate(data)
        await self.engine.report_playback_pulse(payload.room_code, data, connection)

    async def _on_chat_message(self, connection: Connection, data: Any) -> None:
        await self.lifecycle.chat_message(connection, ChatMessagePayload.model_validate(data))

    async def _on_reaction(self, connection: Connection, data: Any) -> None:
        await self.lifecycle.reaction(connection, ReactionPayload.model_validate(data))

    async def _on_get_public_rooms(self, connection: Connection, data: Any) -> None:
        await self.lifecycle.public_rooms(connection)

    async def _on_join_video(self, connection: Connection, data: Any) -> None:
        room_code = room_code_from(data)
        if room_code is None:
            raise MissingRoomCodeError("join-video requires a room code")
        await self.signaling.announce_video_join(connection, room_code)

    async def _on_leave_video(self, connection: Connection, data: Any) -> None:
        room_code = room_code_from(data)
        if room_code is None:
            raise MissingRoomCodeError("leave-video requires a room code")
        await self.signaling.announce_video_leave(connection, room_code)

    async def _on_signal(self, event: str, connection: Connection, data: Any) -> None:
        await self.signaling.forward(event, data)
