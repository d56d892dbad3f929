"""Database connection helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from ...config import Settings, load_settings

__all__ = [
    "create_engine_from_settings",
    "create_sqlite_in_memory_engine",
    "session_scope",
]


def create_engine_from_settings(settings: Settings | None = None) -> Engine:
    settings = settings or load_settings()
    if settings.database.url.startswith("sqlite") and ":memory:" in settings.database.url:
        return create_sqlite_in_memory_engine(echo=settings.database.echo)
    return create_engine(settings.database.url, echo=settings.database.echo)


def create_sqlite_in_memory_engine(*, echo: bool = False) -> Engine:
    """Single-connection in-memory SQLite engine; the database lives as long as the engine."""

    return create_engine(
        "sqlite+pysqlite:///:memory:",
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Yield a unit of work that is always closed on exit.

    Nothing is committed here: closing discards whatever the caller did not
    commit explicitly.
    """

    session = Session(engine)
    try:
        yield session
    finally:
        session.close()
