"""Typer command line client for the Episodarr stream API."""

from .app import app

__all__ = ["app"]
