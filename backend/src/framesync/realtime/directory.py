"""Public room directory advertised to every connected client."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")


def normalise_capacity(value: Any, default: int) -> int:
    """Integer capacity from client input; ``default`` when missing, zero or unparsable."""

    if isinstance(value, bool):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    if isinstance(value, (int, float)):
        capacity = int(value)
    elif isinstance(value, str):
        match = _LEADING_INTEGER.match(value)
        if match is None:
            return default
        capacity = int(match.group(1))
    else:
        return default
    return capacity if capacity > 0 else default


@dataclass
class PublicRoom:
    room_code: str
    title: str
    host: str
    capacity: int
    users: int = 0
    status: str = "live"

    def to_public(self) -> dict[str, Any]:
        return {
            "roomCode": self.room_code,
            "title": self.title,
            "host": self.host,
            "users": self.users,
            "max": self.capacity,
            "status": self.status,
        }


class RoomDirectory:
    """Room code to listing; private rooms never appear here."""

    def __init__(self) -> None:
        self._rooms: Dict[str, PublicRoom] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_code: object) -> bool:
        return room_code in self._rooms

    def get(self, room_code: str) -> PublicRoom | None:
        return self._rooms.get(room_code)

    def publish(self, room_code: str, *, title: str, host: str, capacity: int) -> PublicRoom:
        listing = PublicRoom(room_code=room_code, title=title, host=host, capacity=capacity)
        if room_code in self._rooms:
            logger.info("Replacing public listing for room %s", room_code)
        self._rooms[room_code] = listing
        return listing

    def update_count(self, room_code: str, users: int) -> bool:
        """Set the member count; returns whether the room is listed."""

        listing = self._rooms.get(room_code)
        if listing is None:
            return False
        listing.users = users
        return True

    def remove(self, room_code: str) -> bool:
        return self._rooms.pop(room_code, None) is not None

    def snapshot(self) -> List[dict[str, Any]]:
        return [listing.to_public() for listing in self._rooms.values()]
