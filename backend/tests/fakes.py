"""Shared fakes standing in for the provider site and the browser."""
from __future__ import annotations

from pathlib import Path

import httpx

from backend.provider.browser import CaptureOutcome, ReplayResponse
from backend.provider.capture import CaptureSession
from backend.provider.errors import CaptureTimeoutError, UpstreamReplayError
from backend.stream_api.settings import StreamSettings

MIRROR = "https://mirror.test"
PLAYER_URL = "https://player.test/e/frieren-1"
MASTER_URL = "https://cdn.test/hls/master.m3u8"

SEARCH_PAGE = """
<ul class="items">
  <li>
    <div class="img"><img src="https://cdn.test/frieren.png"></div>
    <p class="name"><a href="/category/sousou-no-frieren" title="Sousou no Frieren">Sousou no Frieren</a></p>
  </li>
</ul>
"""

EPISODE_PAGE = """
<div class="anime_muti_link"><ul>
  <li><a data-video="https://wrapper.test/e/frieren-1">Vidstreaming</a></li>
</ul></div>
"""


def provider_site(request: httpx.Request) -> httpx.Response:
    """MockTransport handler serving a single-title mirror."""

    url = request.url
    if url.host == "mirror.test":
        if url.path == "/":
            return httpx.Response(200, text='<div class="last_episodes"></div>')
        if url.path == "/search.html":
            keyword = url.params.get("keyword", "")
            if "frieren" in keyword.lower():
                return httpx.Response(200, text=SEARCH_PAGE)
            return httpx.Response(200, text="<ul class='items'></ul>")
        if url.path == "/sousou-no-frieren-episode-1":
            return httpx.Response(200, text=EPISODE_PAGE)
        if url.path.startswith("/sousou-no-frieren-episode-"):
            return httpx.Response(200, text="<div>No servers</div>")
        return httpx.Response(404)
    if url.host == "wrapper.test":
        return httpx.Response(200, text=f'<iframe src="{PLAYER_URL}"></iframe>')
    return httpx.Response(502)


class FakeReplay:
    """Replay session answering from a URL to response table."""

    def __init__(self, responses: dict[str, object] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, str | None]] = []

    async def fetch(self, url: str, referer: str | None = None) -> ReplayResponse:
        self.calls.append((url, referer))
        answer = self.responses.get(url)
        if answer is None:
            return ReplayResponse(status=404, content_type="text/plain", body=b"not found")
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, list):
            next_answer = answer.pop(0) if len(answer) > 1 else answer[0]
            if isinstance(next_answer, Exception):
                raise next_answer
            return next_answer
        return answer


class FakeCapturer:
    """Stands in for the Chromium engine: captures one master playlist per player."""

    def __init__(self, replay: FakeReplay | None = None, *, fail: bool = False) -> None:
        self.replay = replay or FakeReplay()
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def capture(self, player_url: str, referer: str, session: CaptureSession) -> CaptureOutcome:
        self.calls.append((player_url, referer))
        if self.fail:
            raise CaptureTimeoutError(f"Timeout: no video URL found from {player_url}")
        session.observe("https://player.test/assets/player.js")
        session.observe(MASTER_URL)
        info = await session.run()
        return CaptureOutcome(info=info, replay=self.replay)


def make_settings(tmp_path: Path, **overrides) -> StreamSettings:
    values = {
        "database_url": f"sqlite:///{tmp_path / 'episodarr.db'}",
        "mirrors": [MIRROR],
        "capture_debounce_seconds": 0.05,
        "capture_timeout_seconds": 2.0,
        "proxy_backoff_seconds": 0.0,
        "session_dir": str(tmp_path / "sessions"),
    }
    values.update(overrides)
    return StreamSettings(**values)


def replay_error(message: str = "context closed") -> UpstreamReplayError:
    return UpstreamReplayError(message)
