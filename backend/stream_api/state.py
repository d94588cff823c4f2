"""Shared state container for the stream API."""
from __future__ import annotations

from dataclasses import dataclass

import httpx
from sqlalchemy.engine import Engine

from ..provider.browser import BrowserEngine, PageReplaySession
from ..provider.gogoanime import Capturer, GogoanimeProvider
from ..provider.mirrors import MirrorResolver
from .db import create_engine_from_settings, init_database
from .services.proxy_service import ProxyRegistration, ProxyRegistry, ProxyService, to_proxy_url
from .services.source_service import SourceService
from .settings import StreamSettings
from .stores.mapping_store import MappingStore
from .utils.paths import session_state_path


@dataclass(slots=True)
class AppState:
    """Owns the long-lived collaborators: browser, mirror memo, proxy registration and stores."""

    settings: StreamSettings
    engine: Engine
    mapping_store: MappingStore
    http_client: httpx.AsyncClient
    mirrors: MirrorResolver
    browser: BrowserEngine
    capturer: Capturer
    proxy_registry: ProxyRegistry
    proxy_service: ProxyService
    provider: GogoanimeProvider
    source_service: SourceService
    proxy_base_url: str | None

    def __init__(
        self,
        settings: StreamSettings,
        *,
        capturer: Capturer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.engine = create_engine_from_settings(settings)
        init_database(self.engine)
        self.mapping_store = MappingStore(self.engine)
        self.proxy_base_url = None

        self.http_client = httpx.AsyncClient(
            timeout=settings.http_timeout,
            headers={"User-Agent": settings.user_agent},
            transport=transport,
        )
        self.mirrors = MirrorResolver(
            self.http_client,
            settings.mirrors,
            fingerprints=settings.mirror_fingerprints,
            timeout=settings.mirror_probe_timeout,
        )
        self.browser = BrowserEngine(
            user_agent=settings.user_agent,
            headless=settings.browser_headless,
            storage_path=session_state_path(settings.session_dir, settings.session_name),
            blocked_domains=settings.blocked_domains,
            navigation_timeout=settings.capture_timeout_seconds,
            replay_timeout=settings.proxy_fetch_timeout,
        )
        self.capturer = capturer or self.browser

        self.proxy_registry = ProxyRegistry()
        self.proxy_service = ProxyService(
            self.proxy_registry,
            retries=settings.proxy_retries,
            backoff=settings.proxy_backoff_seconds,
        )
        self.provider = GogoanimeProvider(
            self.http_client,
            self.mirrors,
            self.capturer,
            to_proxy_url=self.to_proxy_url,
            on_session=self.register_session,
            user_agent=settings.user_agent,
            capture_debounce=settings.capture_debounce_seconds,
            capture_timeout=settings.capture_timeout_seconds,
        )
        self.source_service = SourceService(
            self.provider,
            self.mapping_store,
            provider_name=settings.provider_name,
            match_threshold=settings.match_threshold,
        )

    def publish_base_url(self, base_url: str) -> None:
        """Record the address the server is reachable on; proxy URLs are built from it."""

        self.proxy_base_url = base_url.rstrip("/")

    def to_proxy_url(self, real_url: str) -> str:
        base_url = self.proxy_base_url or f"http://{self.settings.proxy_host}:{self.settings.proxy_port}"
        return to_proxy_url(base_url, real_url)

    def register_session(self, session: PageReplaySession, referer: str) -> None:
        self.proxy_registry.replace(ProxyRegistration(session=session, referer=referer))

    async def aclose(self) -> None:
        """Release the browser, the HTTP client and the database engine."""

        self.proxy_registry.clear()
        await self.browser.close()
        await self.http_client.aclose()
        self.engine.dispose()
