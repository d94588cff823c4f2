"""Filesystem helpers for browser session storage."""
from __future__ import annotations

from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "Episodarr"
APP_AUTHOR = "Episodarr"


def default_session_dir() -> str:
    """Return the platform-appropriate directory for browser session state."""

    base_dir = Path(user_data_dir(APP_NAME, APP_AUTHOR))
    return str(base_dir / "sessions")


def session_state_path(session_dir: str | None, session_name: str) -> Path:
    """Resolve the storage-state file backing a named browser session."""

    directory = Path(session_dir or default_session_dir()).expanduser()
    return directory / f"{session_name}.json"
