"""
Live mirror detection for providers that hop between domains.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional, Sequence
from urllib.parse import urlparse

import httpx

from .errors import MirrorUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_FINGERPRINTS = ("gogoanime", "Recent Release", "anime_name", "last_episodes")


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class MirrorResolver:
    """Probe mirror candidates in order and memoize the first genuine one."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        mirrors: Sequence[str],
        *,
        fingerprints: Sequence[str] = DEFAULT_FINGERPRINTS,
        timeout: float = 8.0,
    ) -> None:
        self._client = client
        self._mirrors = [mirror.rstrip("/") for mirror in mirrors]
        self._fingerprints = tuple(fingerprints)
        self._timeout = timeout
        self._active: Optional[str] = None
        self._swap_lock = threading.Lock()
        self._probe_lock = asyncio.Lock()

    @property
    def active(self) -> Optional[str]:
        return self._active

    def reset(self) -> None:
        """Forget the memoized origin so the next call probes again."""

        with self._swap_lock:
            if self._active:
                logger.info(f"Resetting active mirror {self._active}")
            self._active = None

    def _remember(self, origin: str) -> str:
        with self._swap_lock:
            self._active = origin
        return origin

    async def resolve(self) -> str:
        if self._active:
            return self._active

        async with self._probe_lock:
            if self._active:
                return self._active

            if not self._mirrors:
                raise MirrorUnavailableError("No mirror candidates configured")

            for candidate in self._mirrors:
                origin = await self._probe(candidate)
                if origin:
                    logger.info(f"Using mirror {origin} (from {candidate})")
                    return self._remember(origin)

            fallback = self._mirrors[0]
            logger.warning(f"All mirrors failed probing, falling back to {fallback}")
            return self._remember(fallback)

    async def _probe(self, candidate: str) -> Optional[str]:
        try:
            response = await self._client.get(
                f"{candidate}/", timeout=self._timeout, follow_redirects=True
            )
        except httpx.HTTPError as exc:
            logger.info(f"Mirror probe failed for {candidate}: {exc}")
            return None

        body = response.text
        if not any(marker in body for marker in self._fingerprints):
            logger.info(f"Mirror {candidate} answered without provider fingerprints")
            return None
        return origin_of(str(response.url))
