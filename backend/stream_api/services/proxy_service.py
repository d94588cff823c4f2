"""Local streaming proxy: registration, browser replay and playlist relaying."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import threading
from typing import Awaitable, Callable, Optional, Protocol
from urllib.parse import parse_qs, quote, urlparse

from ...provider.browser import ReplayResponse
from ...provider.errors import PlaylistCorruptError, ProxyUnavailableError, UpstreamReplayError
from .playlist import looks_like_playlist, rewrite_playlist

logger = logging.getLogger(__name__)

PROXY_ROUTE = "/proxy"
PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Cache-Control": "no-cache",
}


def to_proxy_url(base_url: str, real_url: str) -> str:
    """Wrap a real URL inside the local proxy route."""

    return f"{base_url.rstrip('/')}{PROXY_ROUTE}?url={quote(real_url, safe='')}"


def from_proxy_url(proxy_url: str) -> str | None:
    """Extract the real URL wrapped by :func:`to_proxy_url`."""

    parsed = urlparse(proxy_url)
    if parsed.path != PROXY_ROUTE:
        return None
    values = parse_qs(parsed.query).get("url")
    return values[0] if values else None


def is_playlist_response(content_type: str, url: str) -> bool:
    lowered = content_type.lower()
    return "mpegurl" in lowered or "m3u8" in lowered or ".m3u8" in url


class ReplaySession(Protocol):
    async def fetch(self, url: str, referer: Optional[str] = None) -> ReplayResponse:
        ...


@dataclass(frozen=True)
class ProxyRegistration:
    """The browser session the proxy replays through, with its active referer."""

    session: ReplaySession
    referer: str


class ProxyRegistry:
    """Holds the current registration; writers swap the whole value under a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: ProxyRegistration | None = None

    def current(self) -> ProxyRegistration | None:
        with self._lock:
            return self._current

    def replace(self, registration: ProxyRegistration) -> None:
        with self._lock:
            self._current = registration
        logger.info(f"Proxy session registered (referer {registration.referer})")

    def clear(self) -> None:
        with self._lock:
            self._current = None


@dataclass(frozen=True)
class ProxiedResponse:
    status: int
    content_type: str
    body: bytes


class ProxyService:
    """Replays player requests through the registered browser session."""

    def __init__(
        self,
        registry: ProxyRegistry,
        *,
        retries: int = 3,
        backoff: float = 0.3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.registry = registry
        self._retries = max(1, retries)
        self._backoff = backoff
        self._sleep = sleep

    async def relay(self, target_url: str) -> ReplayResponse:
        """Fetch ``target_url`` through the browser session, retrying 403s and transport errors."""

        registration = self.registry.current()
        if registration is None:
            raise ProxyUnavailableError("No browser context available")

        for attempt in range(1, self._retries + 1):
            try:
                response = await registration.session.fetch(target_url, registration.referer)
            except UpstreamReplayError as exc:
                logger.error(f"Replay error (attempt {attempt}): {exc}")
                if attempt >= self._retries:
                    raise
                await self._sleep(self._backoff * attempt)
                continue

            logger.info(f"Replay: {response.status} {response.content_type} for {target_url[:80]}")
            if response.status == 403 and attempt < self._retries:
                logger.info(f"403, retrying ({attempt}/{self._retries})...")
                await self._sleep(self._backoff * attempt)
                continue
            return response

        raise UpstreamReplayError("Max retries exceeded")  # pragma: no cover - loop always returns or raises

    async def handle(self, target_url: str, to_proxy: Callable[[str], str]) -> ProxiedResponse:
        """Relay ``target_url`` and rewrite it when it is an HLS playlist."""

        response = await self.relay(target_url)

        if response.status == 200 and is_playlist_response(response.content_type, target_url):
            text = response.body.decode("utf-8", errors="replace")
            if not looks_like_playlist(text):
                logger.warning(f"Playlist URL returned non-m3u8 (starts: {text[:50]!r})")
                raise PlaylistCorruptError("Invalid playlist content")
            rewritten = rewrite_playlist(text, target_url, to_proxy)
            return ProxiedResponse(
                status=200,
                content_type=PLAYLIST_CONTENT_TYPE,
                body=rewritten.encode("utf-8"),
            )

        return ProxiedResponse(
            status=response.status,
            content_type=response.content_type,
            body=response.body,
        )
