"""Database helpers for the stream API."""
from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from . import models  # noqa: F401  # register tables on the metadata
from .settings import StreamSettings


def _ensure_sqlite_path(database_url: str) -> None:
    """Create parent directories when using a SQLite URL."""

    if database_url.startswith("sqlite:///"):
        path_part = database_url.removeprefix("sqlite:///").split("?")[0]
        if path_part:
            db_path = Path(path_part)
            db_path.parent.mkdir(parents=True, exist_ok=True)


def create_engine_from_settings(settings: StreamSettings) -> Engine:
    """Create a SQLModel engine using stream settings."""

    _ensure_sqlite_path(settings.database_url)
    connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
    return create_engine(settings.database_url, echo=settings.database_echo, connect_args=connect_args)


def init_database(engine: Engine) -> None:
    """Create tables that do not exist yet."""

    SQLModel.metadata.create_all(engine)
