"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_AUTO_CREATE", "false")

from app.config import Settings
from app.main import app
from app.models import Base
from app.services.watch_party import set_watch_party_service
from app.services.watch_store import SqlWatchPartyStore
from framesync.realtime import Connection, Identity, IdentityRejected, WatchPartyService


class DummyWebSocket:
    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, data: dict[str, Any]) -> None:
        self.sent.append(data)

    def events(self, name: str) -> list[Any]:
        return [message.get("data") for message in self.sent if message.get("type") == name]

    def types(self) -> list[str]:
        return [message["type"] for message in self.sent]


class RecordingStore:
    """In-memory stand-in for the SQL store that records every call."""

    def __init__(self) -> None:
        self.tokens: dict[str, Identity] = {}
        self.emails: dict[str, Identity] = {}
        self.rejected_tokens: set[str] = set()
        self.failing: set[str] = set()
        self.friend_calls: list[tuple[int, int]] = []
        self.friendships: set[tuple[int, int]] = set()
        self.history: list[tuple[str, int, str, str]] = []
        self.watch_time: dict[int, int] = defaultdict(int)
        self.reactions: list[tuple[str, int, str]] = []
        self.rooms: list[tuple[str, int, bool]] = []

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    def resolve_identity(self, token: str | None, email: str | None) -> Identity | None:
        self._check("resolve_identity")
        if token:
            if token in self.rejected_tokens:
                raise IdentityRejected("Token has expired")
            return self.tokens.get(token)
        if email:
            return self.emails.get(email)
        return None

    def register_room(self, room_code: str, host_id: int, is_public: bool) -> None:
        self._check("register_room")
        self.rooms.append((room_code, host_id, is_public))

    def upsert_friendship(self, user_id: int, friend_id: int) -> bool:
        self._check("upsert_friendship")
        self.friend_calls.append((user_id, friend_id))
        self.friendships.update({(user_id, friend_id), (friend_id, user_id)})
        return True

    def append_history(self, room_code: str, user_id: int, media_type: str, media_id: str) -> None:
        self._check("append_history")
        self.history.append((room_code, user_id, media_type, media_id))

    def add_watch_time(self, user_id: int, seconds: int) -> None:
        self._check("add_watch_time")
        self.watch_time[user_id] += seconds

    def record_reaction(self, room_code: str, user_id: int, emoji: str) -> None:
        self._check("record_reaction")
        self.reactions.append((room_code, user_id, emoji))


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def party_settings() -> Settings:
    return Settings(
        store_timeout_seconds=0.2,
        drift_pulse_interval_seconds=0,
        public_room_default_capacity=8,
    )


@pytest.fixture()
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def service(store, party_settings, clock) -> WatchPartyService:
    return WatchPartyService(store, settings=party_settings, clock=clock)


@pytest.fixture()
def websocket_factory():
    return DummyWebSocket


@pytest.fixture()
def connect(service):
    """Register a dummy websocket with the service and return its connection."""

    def _connect() -> Connection:
        return service.connect(DummyWebSocket())

    return _connect


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def sql_store(session_factory) -> SqlWatchPartyStore:
    return SqlWatchPartyStore(session_factory)


@pytest.fixture()
def client(sql_store, party_settings) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient whose party service persists to the test engine."""

    previous = set_watch_party_service(WatchPartyService(sql_store, settings=party_settings))
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        set_watch_party_service(previous)
