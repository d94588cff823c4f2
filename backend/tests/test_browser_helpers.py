"""Tests for the browser route helpers and in-page replay."""
from __future__ import annotations

import asyncio
import base64
import sys
from pathlib import Path

import pytest
from playwright.async_api import Error as PlaywrightError

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.provider.browser import (  # noqa: E402
    DEFAULT_BLOCKED_DOMAINS,
    PageReplaySession,
    is_blocked,
    strip_security_headers,
    with_referer,
)
from backend.provider.errors import UpstreamReplayError  # noqa: E402


class FakePage:
    def __init__(self, result: dict | None = None, error: Exception | None = None, delay: float = 0.0) -> None:
        self.result = result
        self.error = error
        self.delay = delay
        self.calls: list[object] = []

    async def evaluate(self, expression: str, arg=None):
        self.calls.append(arg)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def test_blocklist_matches_ad_and_tracking_hosts() -> None:
    assert is_blocked("https://www.googletagmanager.com/gtm.js", DEFAULT_BLOCKED_DOMAINS)
    assert is_blocked("https://a.popads.net/pop.js", DEFAULT_BLOCKED_DOMAINS)
    assert not is_blocked("https://cdn.test/hls/master.m3u8", DEFAULT_BLOCKED_DOMAINS)


def test_with_referer_only_fills_missing_header() -> None:
    assert with_referer({"Accept": "*/*"}, "https://player.test/") == {
        "Accept": "*/*",
        "Referer": "https://player.test/",
    }
    assert with_referer({"referer": "https://origin.test/"}, "https://player.test/") == {
        "referer": "https://origin.test/"
    }


def test_strip_security_headers() -> None:
    headers = {
        "Content-Type": "text/html",
        "Content-Security-Policy": "default-src 'self'",
        "content-security-policy-report-only": "default-src 'self'",
        "Referrer-Policy": "no-referrer",
    }

    assert strip_security_headers(headers) == {"Content-Type": "text/html"}


def test_page_replay_decodes_in_page_fetch_result() -> None:
    page = FakePage(
        {
            "status": 200,
            "contentType": "application/vnd.apple.mpegurl",
            "body": base64.b64encode(b"#EXTM3U\n").decode("ascii"),
        }
    )
    session = PageReplaySession(page)

    response = asyncio.run(session.fetch("https://cdn.test/index.m3u8", "https://player.test/e/1"))

    assert response.status == 200
    assert response.content_type == "application/vnd.apple.mpegurl"
    assert response.body == b"#EXTM3U\n"
    assert page.calls == [["https://cdn.test/index.m3u8", "https://player.test/e/1"]]


def test_page_replay_wraps_playwright_errors() -> None:
    session = PageReplaySession(FakePage(error=PlaywrightError("Target page, context or browser has been closed")))

    with pytest.raises(UpstreamReplayError):
        asyncio.run(session.fetch("https://cdn.test/index.m3u8"))


def test_page_replay_times_out() -> None:
    session = PageReplaySession(FakePage({"status": 200, "body": ""}, delay=1.0), timeout=0.05)

    with pytest.raises(UpstreamReplayError, match="timed out"):
        asyncio.run(session.fetch("https://cdn.test/index.m3u8"))
