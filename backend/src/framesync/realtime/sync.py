"""Host-driven playback synchronization.

Load events (``loadVideo``, ``loadFile``, ``startScreenShare``) replace the
room's :class:`PlaybackState` and are fanned out to the room.  ``videoState``
pulses are relayed verbatim to everybody but the sender and never touch the
store, so the stored state always reflects the latest load.  A background
task periodically asks every host for a fresh pulse to pull drifting viewers
back in line.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.models.enums import MediaMode
from app.monitoring.metrics import active_playback_states, drift_pulses_total

from .collaborators import BestEffortRunner, WatchPartyStore
from .emitter import Emitter
from .playback import PlaybackState, PlaybackStateStore
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

LOAD_EVENTS: dict[MediaMode, str] = {
    MediaMode.YOUTUBE: "loadVideo",
    MediaMode.FILE: "loadFile",
    MediaMode.SCREEN: "startScreenShare",
}

_HISTORY_MODES = frozenset({MediaMode.YOUTUBE, MediaMode.FILE})


class SynchronizationEngine:
    def __init__(
        self,
        registry: ConnectionRegistry,
        emitter: Emitter,
        playback: PlaybackStateStore,
        store: WatchPartyStore,
        runner: BestEffortRunner,
        *,
        pulse_interval: float,
        enforce_host_authority: bool = False,
    ) -> None:
        self._registry = registry
        self._emitter = emitter
        self._playback = playback
        self._store = store
        self._runner = runner
        self._pulse_interval = pulse_interval
        self._enforce_host_authority = enforce_host_authority
        self._pulse_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._pulse_task is not None and not self._pulse_task.done()

    def _authorised(self, issuer: Connection, room_code: str, event: str) -> bool:
        if not self._enforce_host_authority:
            return True
        if (
            issuer.is_host
            and issuer.room_code == room_code
            and self._registry.in_group(issuer.sid, room_code)
        ):
            return True
        logger.warning(
            "Dropping %s for room %s from non-host connection %s", event, room_code, issuer.sid
        )
        return False

    async def load_media(
        self,
        room_code: str,
        mode: MediaMode,
        payload: dict[str, Any],
        issuer: Connection,
    ) -> PlaybackState | None:
        event = LOAD_EVENTS[mode]
        if not self._authorised(issuer, room_code, event):
            return None

        state = self._playback.set(room_code, mode, payload)
        active_playback_states.set(len(self._playback))
        logger.info("Room %s now playing %s %s", room_code, mode.value, state.media_id)

        exclude = {issuer.sid} if mode is MediaMode.SCREEN else ()
        await self._emitter.to_room(room_code, event, payload, exclude=exclude)

        if mode in _HISTORY_MODES and issuer.user_id is not None and state.media_id:
            await self._runner.run(
                "history append",
                self._store.append_history,
                room_code,
                issuer.user_id,
                mode.value,
                state.media_id,
                fallback=None,
            )
        return state

    async def report_playback_pulse(
        self, room_code: str, payload: Any, issuer: Connection
    ) -> int:
        if not self._authorised(issuer, room_code, "videoState"):
            return 0
        return await self._emitter.to_room(room_code, "videoState", payload, exclude={issuer.sid})

    async def stop_screen_share(self, room_code: str, issuer: Connection) -> None:
        if not self._authorised(issuer, room_code, "stopScreenShare"):
            return
        state = self._playback.get(room_code)
        if state is not None and state.mode is MediaMode.SCREEN:
            self._playback.discard(room_code)
            active_playback_states.set(len(self._playback))
        await self._emitter.to_room(
            room_code, "stopScreenShare", {"roomCode": room_code}, exclude={issuer.sid}
        )

    async def request_initial_sync(self, connection: Connection) -> bool:
        """Unicast the stored state of the connection's room, if there is one."""

        if connection.room_code is None:
            return False
        state = self._playback.get(connection.room_code)
        if state is None:
            return False
        return await self._emitter.to_connection(connection, "roomInitialSync", state.to_public())

    def forget(self, room_code: str) -> None:
        self._playback.discard(room_code)
        active_playback_states.set(len(self._playback))

    async def drift_pulse_once(self) -> int:
        asked = 0
        for host in self._registry.hosts_in_rooms():
            if await self._emitter.to_connection(
                host, "requestVideoState", {"roomCode": host.room_code}
            ):
                asked += 1
        if asked:
            drift_pulses_total.inc(asked)
        return asked

    async def _pulse_loop(self) -> None:
        while True:
            await asyncio.sleep(self._pulse_interval)
            try:
                await self.drift_pulse_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Drift pulse iteration failed")

    async def start(self) -> None:
        if self.running or self._pulse_interval <= 0:
            return
        self._pulse_task = asyncio.create_task(self._pulse_loop(), name="framesync-drift-pulse")
        logger.info("Drift pulse started (every %.1fs)", self._pulse_interval)

    async def stop(self) -> None:
        task, self._pulse_task = self._pulse_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
