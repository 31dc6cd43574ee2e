"""Metric definitions for the watch party realtime core."""

from __future__ import annotations

from .registry import registry


realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of party events handled by the websocket gateway.",
    label_names=("event", "direction"),
)

realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of active websocket connections handled locally.",
    label_names=("scope",),
)

public_rooms = registry.gauge(
    "party_public_rooms",
    "Number of rooms currently advertised in the public directory.",
)

active_playback_states = registry.gauge(
    "party_playback_states",
    "Number of rooms holding an authoritative playback state.",
)

drift_pulses_total = registry.counter(
    "party_drift_pulses_total",
    "Number of requestVideoState messages sent to room hosts.",
)

store_fallbacks_total = registry.counter(
    "store_fallbacks_total",
    "Persistence calls that timed out or failed and fell back to a default.",
    label_names=("action", "reason"),
)
