"""Database utilities for configuring the key-value store backend."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, Field
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker


class DatabaseSettings(BaseModel):
    """Configuration values for selecting and connecting to the store."""

    url: str | None = Field(default=None)
    echo: bool = Field(default=False)
    mode: str = Field(default="memory")

    @classmethod
    def load(cls) -> DatabaseSettings:
        return cls(
            url=os.getenv("ROUTINE_NOTIFIER_DB_URL"),
            echo=os.getenv("ROUTINE_NOTIFIER_DB_ECHO", "false").lower()
            in {"1", "true", "yes", "on"},
            mode=os.getenv("ROUTINE_NOTIFIER_STORE", "memory").lower(),
        )


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Return cached database settings."""
    return DatabaseSettings.load()


_engine_lock = Lock()
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def is_database_configured() -> bool:
    """Return True when the environment selects the SQL store."""
    settings = get_database_settings()
    if settings.mode != "database":
        return False
    return bool(settings.url)


def _ensure_sqlite_directory(url: str) -> None:
    if url.startswith("sqlite:///"):
        db_path = Path(url.replace("sqlite:///", "", 1))
        db_path.parent.mkdir(parents=True, exist_ok=True)


def _prepare_schema(engine: Engine) -> None:
    """Ensure the key-value table exists."""
    from .db_models import Base  # Local import to avoid circular deps

    Base.metadata.create_all(engine)


def create_store_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``url`` with the key-value schema in place."""
    _ensure_sqlite_directory(url)
    engine = create_engine(url, echo=echo, future=True)
    _prepare_schema(engine)
    return engine


def get_engine() -> Engine | None:
    """Return the configured SQLAlchemy engine, if any."""
    global _engine

    if not is_database_configured():
        return None

    settings = get_database_settings()
    if settings.url is None:
        return None

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = create_store_engine(settings.url, echo=settings.echo)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Return a session factory for creating SQLAlchemy sessions."""
    global _session_factory
    engine = get_engine()
    if engine is None:
        raise RuntimeError(
            "Database is not configured. Set ROUTINE_NOTIFIER_DB_URL and "
            "ROUTINE_NOTIFIER_STORE=database to enable SQL storage."
        )

    if _session_factory is None:
        with _engine_lock:
            if _session_factory is None:
                _session_factory = sessionmaker(
                    bind=engine,
                    autoflush=False,
                    autocommit=False,
                    future=True,
                )
    return _session_factory
