"""Application factory for the Episodarr stream API."""
from __future__ import annotations

from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..provider.gogoanime import Capturer
from .routers import health, mappings, proxy, sources
from .settings import StreamSettings
from .state import AppState

logger = logging.getLogger(__name__)


def create_app(
    settings: StreamSettings | None = None,
    *,
    capturer: Capturer | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""

    resolved_settings = settings or StreamSettings()
    app_state = AppState(settings=resolved_settings, capturer=capturer, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down: closing browser and HTTP client")
        await app_state.aclose()

    app = FastAPI(title="Episodarr Stream API", version="0.1.0", lifespan=lifespan)
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (
        health.router,
        sources.router,
        mappings.router,
        proxy.router,
    ):
        app.include_router(router)

    return app
