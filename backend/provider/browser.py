"""
Playwright browser engine shared by every capture session.

One Chromium instance lives for the whole process. Each capture opens a
fresh context seeded from a named storage-state file, so cookies and
anti-bot clearance earned on one attempt carry over to the next. Opening a
context closes the previous one; the newest session always wins.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    Request,
    Route,
    async_playwright,
)

from .capture import CaptureSession
from .errors import ExtractionFailedError, UpstreamReplayError
from .models import StreamingInfo

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_BLOCKED_DOMAINS = (
    "googletagmanager.com",
    "google-analytics.com",
    "doubleclick.net",
    "googlesyndication.com",
    "plausible.io",
    "bvtpk.com",
    "popads.net",
    "popunder",
)


def is_blocked(url: str, blocked_domains: Iterable[str]) -> bool:
    return any(domain in url for domain in blocked_domains)


def with_referer(headers: Mapping[str, str], referer: str) -> Dict[str, str]:
    """Copy request headers, adding ``Referer`` when the request has none."""

    merged = dict(headers)
    if not any(key.lower() == "referer" for key in merged):
        merged["Referer"] = referer
    return merged


def strip_security_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Drop CSP and Referrer-Policy headers so the page and the proxy can refer freely."""

    kept: Dict[str, str] = {}
    for key, value in headers.items():
        lowered = key.lower()
        if lowered.startswith("content-security-policy") or lowered == "referrer-policy":
            continue
        kept[key] = value
    return kept


@dataclass(frozen=True)
class ReplayResponse:
    status: int
    content_type: str
    body: bytes


# Runs inside the player page so the request leaves through Chromium's own
# network stack with the page's cookies, TLS sessions and origin.
_IN_PAGE_FETCH = """
async ([url, referer]) => {
  const init = {credentials: "include", cache: "no-store"};
  if (referer) {
    init.referrer = referer;
  }
  const response = await fetch(url, init);
  const bytes = new Uint8Array(await response.arrayBuffer());
  let binary = "";
  for (let offset = 0; offset < bytes.length; offset += 0x8000) {
    binary += String.fromCharCode.apply(null, bytes.subarray(offset, offset + 0x8000));
  }
  return {
    status: response.status,
    contentType: response.headers.get("content-type") || "",
    body: btoa(binary),
  };
}
"""

_PAUSE_MEDIA = "() => document.querySelectorAll('video, audio').forEach((media) => media.pause())"


class PageReplaySession:
    """Replays requests from inside the kept-alive player page."""

    def __init__(self, page: Page, *, timeout: float = 20.0) -> None:
        self._page = page
        self._timeout = timeout

    async def fetch(self, url: str, referer: Optional[str] = None) -> ReplayResponse:
        try:
            result = await asyncio.wait_for(
                self._page.evaluate(_IN_PAGE_FETCH, [url, referer]),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamReplayError(f"Browser replay timed out for {url[:80]}") from exc
        except PlaywrightError as exc:
            raise UpstreamReplayError(f"Browser replay failed for {url[:80]}: {exc}") from exc
        return ReplayResponse(
            status=int(result["status"]),
            content_type=result.get("contentType", ""),
            body=base64.b64decode(result.get("body", "")),
        )


@dataclass(frozen=True)
class CaptureOutcome:
    info: StreamingInfo
    replay: PageReplaySession


class BrowserEngine:
    """Lazily started Chromium instance that runs capture sessions one at a time."""

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        headless: bool = True,
        storage_path: Optional[Path] = None,
        blocked_domains: Iterable[str] = DEFAULT_BLOCKED_DOMAINS,
        navigation_timeout: float = 25.0,
        replay_timeout: float = 20.0,
    ) -> None:
        self.user_agent = user_agent
        self.headless = headless
        self.storage_path = storage_path
        self.blocked_domains = tuple(blocked_domains)
        self._navigation_timeout_ms = navigation_timeout * 1000
        self._replay_timeout = replay_timeout
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._start_lock = asyncio.Lock()
        self._capture_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        if self._browser is not None:
            return
        async with self._start_lock:
            if self._browser is not None:
                return
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=["--disable-blink-features=AutomationControlled"],
            )
            logger.info("Chromium started for capture sessions")

    async def close(self) -> None:
        await self._close_context()
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def capture(self, player_url: str, referer: str, session: CaptureSession) -> CaptureOutcome:
        """Render ``player_url`` and let ``session`` pick media out of its traffic.

        On success the player page stays open inside the current context and
        the returned replay session fetches through it. The next capture
        closes both.
        """
        try:
            await self.start()
        except PlaywrightError as exc:
            raise ExtractionFailedError(f"Chromium could not be started: {exc}") from exc
        async with self._capture_lock:
            try:
                context = await self._open_context(player_url)
                context.on("request", lambda request: session.observe(request.url))
                page = await context.new_page()
            except PlaywrightError as exc:
                raise ExtractionFailedError(f"Could not open a browser session for {player_url}: {exc}") from exc
            navigation = asyncio.create_task(self._navigate(page, player_url, referer))
            try:
                info = await session.run()
            except BaseException:
                await self._settle_navigation(navigation)
                await self._close_page(page)
                await self._save_state(context)
                raise
            await self._settle_navigation(navigation)
            await self._save_state(context)
            await self._pause_media(page)
            return CaptureOutcome(
                info=info,
                replay=PageReplaySession(page, timeout=self._replay_timeout),
            )

    async def _open_context(self, player_url: str) -> BrowserContext:
        await self._close_context()
        assert self._browser is not None
        storage_state = None
        if self.storage_path is not None and self.storage_path.exists():
            storage_state = str(self.storage_path)
        context = await self._browser.new_context(
            user_agent=self.user_agent,
            storage_state=storage_state,
        )
        await context.route("**/*", self._route_handler(player_url))
        self._context = context
        return context

    async def _close_context(self) -> None:
        if self._context is None:
            return
        context, self._context = self._context, None
        try:
            await context.close()
        except PlaywrightError as exc:
            logger.debug(f"Closing previous browser context failed: {exc}")

    def _route_handler(self, player_url: str):
        """Build the context route hook.

        Blocked hosts are aborted. Documents (top frame and sub-frames) are
        fetched and fulfilled without CSP/Referrer-Policy headers; everything
        else continues on Chromium's network stack with a Referer filled in.
        Every route is settled, even when the upstream request fails.
        """
        blocked_domains = self.blocked_domains

        async def _handle(route: Route, request: Request) -> None:
            try:
                if is_blocked(request.url, blocked_domains):
                    await route.abort()
                    return
                headers = with_referer(request.headers, player_url)
                if request.resource_type != "document":
                    await route.continue_(headers=headers)
                    return
                response = await route.fetch(headers=headers)
                await route.fulfill(
                    response=response,
                    headers=strip_security_headers(response.headers),
                )
            except PlaywrightError as exc:
                logger.debug(f"Route handling failed for {request.url[:80]}: {exc}")
                await _abort_quietly(route)

        return _handle

    async def _navigate(self, page: Page, player_url: str, referer: str) -> None:
        try:
            await page.goto(
                player_url,
                referer=referer,
                wait_until="domcontentloaded",
                timeout=self._navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            # obfuscated players often load media from sub-frames even when the top frame fails
            logger.warning(f"Player page load failed for {player_url}: {exc}")

    async def _settle_navigation(self, navigation: asyncio.Task) -> None:
        if not navigation.done():
            navigation.cancel()
        await asyncio.gather(navigation, return_exceptions=True)

    async def _pause_media(self, page: Page) -> None:
        try:
            await page.evaluate(_PAUSE_MEDIA)
        except PlaywrightError as exc:
            logger.debug(f"Pausing player media failed: {exc}")

    async def _close_page(self, page: Page) -> None:
        try:
            await page.close()
        except PlaywrightError as exc:
            logger.debug(f"Closing capture page failed: {exc}")

    async def _save_state(self, context: BrowserContext) -> None:
        if self.storage_path is None:
            return
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            await context.storage_state(path=str(self.storage_path))
        except PlaywrightError as exc:
            logger.warning(f"Saving browser session state failed: {exc}")


async def _abort_quietly(route: Route) -> None:
    try:
        await route.abort()
    except PlaywrightError as exc:
        # already handled, or the context is gone
        logger.debug(f"Route abort failed: {exc}")
