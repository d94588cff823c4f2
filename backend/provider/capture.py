"""
Network-traffic capture for obfuscated embed players.

The player script is never parsed. The browser layer reports every request
it observes, and a :class:`CaptureSession` decides which of those requests
are the media the player eventually has to fetch.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from .errors import CaptureTimeoutError
from .models import StreamingInfo, VideoSource

logger = logging.getLogger(__name__)

ANALYTICS_MARKERS = ("jwpltx", "ping.gif")
_SEGMENT_RE = re.compile(r"\.ts(?:$|[/?#])", re.IGNORECASE)
_DIRECT_MEDIA_RE = re.compile(r"\.(?:mp4|webm)(?:\?|$)", re.IGNORECASE)
_AD_RE = re.compile(r"(?:^|[/._-])ads?(?:[/._-]|$)", re.IGNORECASE)

HLS = "hls"
DIRECT = "direct"


def classify_request(url: str) -> Optional[str]:
    """Return ``"hls"``, ``"direct"`` or ``None`` for an observed request URL."""

    if not url.startswith("http"):
        return None

    path = url.split("?", 1)[0].lower()
    looks_like_manifest = (
        path.endswith(".m3u8") or "/master.m3u8" in path or "/index" in path
    ) and ".m3u8" in path
    if looks_like_manifest:
        if _SEGMENT_RE.search(path) or any(marker in url for marker in ANALYTICS_MARKERS):
            return None
        return HLS

    if _DIRECT_MEDIA_RE.search(url) and not _AD_RE.search(url.split("?", 1)[0]):
        return DIRECT
    return None


class CaptureState(str, Enum):
    PENDING = "pending"
    CAPTURING = "capturing"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class RequestObserved:
    url: str


@dataclass(frozen=True)
class DebounceElapsed:
    generation: int


@dataclass(frozen=True)
class CeilingReached:
    pass


CaptureEvent = Union[RequestObserved, DebounceElapsed, CeilingReached]


class CaptureSession:
    """Debounced state machine fed by browser request events.

    Every qualifying request restarts the debounce timer so that quality
    variants announced close together land in the same result. A separate
    ceiling timer always fires, bounding the session even when captures keep
    arriving.
    """

    def __init__(
        self,
        player_url: str,
        *,
        to_proxy_url: Callable[[str], str],
        debounce: float = 2.0,
        ceiling: float = 25.0,
    ) -> None:
        self.player_url = player_url
        self.state = CaptureState.PENDING
        self.sources: List[VideoSource] = []
        self._to_proxy_url = to_proxy_url
        self._debounce = debounce
        self._ceiling = ceiling
        self._events: "asyncio.Queue[CaptureEvent]" = asyncio.Queue()
        self._generation = 0
        self._debounce_handle: Optional[asyncio.TimerHandle] = None

    @property
    def finished(self) -> bool:
        return self.state in (CaptureState.RESOLVED, CaptureState.TIMED_OUT)

    def observe(self, url: str) -> None:
        """Queue a request observed by the browser. Safe to call from event hooks."""

        if self.finished:
            return
        self._events.put_nowait(RequestObserved(url))

    async def run(self) -> StreamingInfo:
        loop = asyncio.get_running_loop()
        ceiling_handle = loop.call_later(self._ceiling, self._events.put_nowait, CeilingReached())
        try:
            while True:
                event = await self._events.get()
                if isinstance(event, RequestObserved):
                    self._on_request(event.url, loop)
                elif isinstance(event, DebounceElapsed):
                    if event.generation != self._generation:
                        continue
                    self.state = CaptureState.RESOLVED
                    logger.info(f"Capture resolved with {len(self.sources)} source(s) from {self.player_url}")
                    return self._result()
                elif isinstance(event, CeilingReached):
                    self.state = CaptureState.TIMED_OUT
                    if self.sources:
                        logger.info(
                            f"Capture ceiling reached with {len(self.sources)} source(s) from {self.player_url}"
                        )
                        return self._result()
                    raise CaptureTimeoutError(f"Timeout: no video URL found from {self.player_url}")
        finally:
            ceiling_handle.cancel()
            if self._debounce_handle is not None:
                self._debounce_handle.cancel()

    def _on_request(self, url: str, loop: asyncio.AbstractEventLoop) -> None:
        kind = classify_request(url)
        if kind is None:
            return

        source = VideoSource(
            url=self._to_proxy_url(url),
            quality="auto" if kind == HLS else "default",
            is_m3u8=kind == HLS,
        )
        if source not in self.sources:
            self.sources.append(source)
            logger.info(f"Captured {kind} source: {url}")

        self.state = CaptureState.CAPTURING
        self._generation += 1
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = loop.call_later(
            self._debounce, self._events.put_nowait, DebounceElapsed(self._generation)
        )

    def _result(self) -> StreamingInfo:
        return StreamingInfo(
            sources=tuple(self.sources),
            headers={"Referer": self.player_url},
            embed_url=self.player_url,
        )
