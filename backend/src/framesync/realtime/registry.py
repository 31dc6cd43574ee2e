"""Live connection bookkeeping: session attributes, room groups and statuses."""

from __future__ import annotations

import secrets
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Set

from fastapi.websockets import WebSocket


@dataclass
class Connection:
    """Session attributes of one accepted websocket."""

    websocket: WebSocket
    sid: str
    display_name: str | None = None
    room_code: str | None = None
    is_host: bool = False
    user_id: int | None = None
    joined_at: float | None = None
    avatar: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    def to_member(self) -> dict[str, Any]:
        return {
            "name": self.display_name,
            "isHost": self.is_host,
            "userId": self.user_id,
            "socketId": self.sid,
            "avatar": self.avatar,
        }


class ConnectionRegistry:
    """Maps connection ids to sessions and room codes to group members.

    Group membership is the only source for rosters and fan-out, so every
    roster is recomputed from the group at the moment it is needed.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._groups: Dict[str, Set[str]] = defaultdict(set)

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def register(self, websocket: WebSocket) -> Connection:
        sid = secrets.token_hex(10)
        while sid in self._connections:
            sid = secrets.token_hex(10)
        connection = Connection(websocket=websocket, sid=sid)
        self._connections[sid] = connection
        return connection

    def unregister(self, sid: str) -> Connection | None:
        connection = self._connections.pop(sid, None)
        for code in [code for code, members in self._groups.items() if sid in members]:
            self.leave_group(sid, code)
        return connection

    def get(self, sid: str) -> Connection | None:
        return self._connections.get(sid)

    def enter_group(self, sid: str, room_code: str) -> None:
        if sid in self._connections:
            self._groups[room_code].add(sid)

    def leave_group(self, sid: str, room_code: str) -> None:
        members = self._groups.get(room_code)
        if members is None:
            return
        members.discard(sid)
        if not members:
            del self._groups[room_code]

    def clear_group(self, room_code: str) -> List[Connection]:
        """Remove every member from the group and return who was in it."""

        sids = self._groups.pop(room_code, set())
        return [self._connections[sid] for sid in sids if sid in self._connections]

    def in_group(self, sid: str, room_code: str) -> bool:
        return sid in self._groups.get(room_code, ())

    def members(self, room_code: str) -> List[Connection]:
        sids = self._groups.get(room_code, ())
        return [self._connections[sid] for sid in sids if sid in self._connections]

    def roster(self, room_code: str) -> List[dict[str, Any]]:
        return [member.to_member() for member in self.members(room_code)]

    def hosts_in_rooms(self) -> List[Connection]:
        """Connections flagged host that are still inside their room group."""

        return [
            connection
            for connection in self._connections.values()
            if connection.is_host
            and connection.room_code is not None
            and self.in_group(connection.sid, connection.room_code)
        ]


class PresenceStatusBook:
    """Last status reported per user id."""

    OFFLINE = "offline"

    def __init__(self) -> None:
        self._statuses: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._statuses)

    def set(self, user_id: object, status: str) -> None:
        self._statuses[str(user_id)] = status

    def mark_offline(self, user_id: object) -> None:
        self._statuses[str(user_id)] = self.OFFLINE

    def get(self, user_id: object) -> str:
        return self._statuses.get(str(user_id), self.OFFLINE)
