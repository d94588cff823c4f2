"""
Gogoanime provider: search, episode pages and embed-server extraction.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol
from urllib.parse import quote_plus

import httpx

from .browser import DEFAULT_USER_AGENT, CaptureOutcome, PageReplaySession
from .capture import CaptureSession
from .errors import ExtractionFailedError, NoServersFoundError, ProviderHTTPError, StreamResolverError
from .mirrors import MirrorResolver
from .models import SearchResult, StreamingInfo
from .parsing import parse_embed_servers, parse_iframe_src, parse_search_results

logger = logging.getLogger(__name__)

PROVIDER_NAME = "gogoanime"


class Capturer(Protocol):
    async def capture(self, player_url: str, referer: str, session: CaptureSession) -> CaptureOutcome:
        ...


SessionCallback = Callable[[PageReplaySession, str], None]


class GogoanimeProvider:
    """Scraper for the gogoanime family of mirrors."""

    name = PROVIDER_NAME

    def __init__(
        self,
        client: httpx.AsyncClient,
        mirrors: MirrorResolver,
        capturer: Capturer,
        *,
        to_proxy_url: Callable[[str], str],
        on_session: Optional[SessionCallback] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        capture_debounce: float = 2.0,
        capture_timeout: float = 25.0,
    ) -> None:
        self._client = client
        self.mirrors = mirrors
        self._capturer = capturer
        self._to_proxy_url = to_proxy_url
        self._on_session = on_session
        self.user_agent = user_agent
        self.capture_debounce = capture_debounce
        self.capture_timeout = capture_timeout

    async def _fetch_text(self, url: str, referer: Optional[str] = None) -> str:
        headers = {"User-Agent": self.user_agent}
        if referer:
            headers["Referer"] = referer
        try:
            response = await self._client.get(url, headers=headers, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise ProviderHTTPError(f"Failed to fetch {url}: {exc}") from exc
        if response.status_code >= 400:
            raise ProviderHTTPError(
                f"HTTP {response.status_code} fetching {url}", status_code=response.status_code
            )
        return response.text

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    async def search(self, query: str) -> List[SearchResult]:
        base = await self.mirrors.resolve()
        url = f"{base}/search.html?keyword={quote_plus(query)}"
        logger.info(f"Searching: {url}")
        html = await self._fetch_text(url)
        results = parse_search_results(html, base)
        logger.info(f"Found {len(results)} results for {query!r}")
        return results

    # ------------------------------------------------------------------ #
    # Episode sources
    # ------------------------------------------------------------------ #

    async def get_embed_servers(self, slug: str, episode: int) -> List[str]:
        base = await self.mirrors.resolve()
        episode_url = f"{base}/{slug}-episode-{episode}"
        logger.info(f"Fetching episode: {episode_url}")
        html = await self._fetch_text(episode_url)
        servers = parse_embed_servers(html)
        if not servers:
            raise NoServersFoundError(f"No streaming servers found for {slug} episode {episode}")
        logger.info(f"Found {len(servers)} embed servers")
        return servers

    async def resolve_player_url(self, embed_url: str, referer: str) -> str:
        """Follow one level of iframe wrapping around the real player."""

        try:
            html = await self._fetch_text(embed_url, referer=referer)
        except ProviderHTTPError as exc:
            logger.info(f"Could not inspect embed wrapper {embed_url}: {exc}")
            return embed_url
        iframe_src = parse_iframe_src(html)
        if iframe_src:
            logger.info(f"Resolved iframe: {iframe_src}")
            return iframe_src
        return embed_url

    async def get_episode_sources(self, slug: str, episode: int) -> StreamingInfo:
        base = await self.mirrors.resolve()
        servers = await self.get_embed_servers(slug, episode)

        last_error: Optional[StreamResolverError] = None
        for embed_url in servers:
            try:
                info = await self._extract(embed_url, base)
            except StreamResolverError as exc:
                last_error = exc
                logger.warning(f"Server failed ({embed_url}): {exc}")
                continue
            if info.sources:
                return info

        if last_error is not None:
            raise last_error
        raise ExtractionFailedError("Failed to extract video sources from any server")

    async def _extract(self, embed_url: str, referer: str) -> StreamingInfo:
        player_url = await self.resolve_player_url(embed_url, referer)
        logger.info(f"Extracting via browser capture: {player_url}")
        session = CaptureSession(
            player_url,
            to_proxy_url=self._to_proxy_url,
            debounce=self.capture_debounce,
            ceiling=self.capture_timeout,
        )
        outcome = await self._capturer.capture(player_url, referer, session)
        if outcome.info.sources and self._on_session is not None:
            self._on_session(outcome.replay, player_url)
        return outcome.info
