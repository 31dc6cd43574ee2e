from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings

settings = get_settings()

# SQLite connections are handed to worker threads by the realtime store, so the
# same-thread check has to be disabled; pooled servers get pre-ping instead.
if settings.is_sqlite:
    engine = create_engine(
        settings.database_url,
        echo=settings.debug,
        future=True,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        settings.database_url,
        echo=settings.debug,
        future=True,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Iterator[Session]:
    """Context manager for short-lived database sessions.

    The realtime store opens one of these per persistence call instead of
    holding a session for the lifetime of a websocket.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_schema() -> None:
    """Create any missing tables for the configured engine."""

    from app.models import Base

    Base.metadata.create_all(engine)
