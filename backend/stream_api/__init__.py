"""Episodarr stream API: episode source resolution behind a local proxy."""

from .app import create_app

__all__ = ["create_app"]
