"""Tests for the browser engine against fake Playwright objects."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest
from playwright.async_api import Error as PlaywrightError

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.provider.browser import BrowserEngine, PageReplaySession  # noqa: E402
from backend.provider.capture import CaptureSession  # noqa: E402
from backend.provider.errors import CaptureTimeoutError, ExtractionFailedError  # noqa: E402

PLAYER_URL = "https://player.test/e/abc"
REFERER = "https://wrapper.test/streaming.php?id=1"
MASTER_URL = "https://cdn.test/hls/master.m3u8"


class FakeRequest:
    def __init__(self, url: str, resource_type: str = "other", headers: dict[str, str] | None = None) -> None:
        self.url = url
        self.resource_type = resource_type
        self.headers = headers or {}


class FakeFetchedResponse:
    def __init__(self, headers: dict[str, str]) -> None:
        self.headers = headers


class FakeRoute:
    def __init__(self, *, fetch_error: Exception | None = None, abort_error: Exception | None = None) -> None:
        self.fetch_error = fetch_error
        self.abort_error = abort_error
        self.actions: list[tuple[str, object]] = []

    async def abort(self) -> None:
        self.actions.append(("abort", None))
        if self.abort_error is not None:
            raise self.abort_error

    async def continue_(self, *, headers=None) -> None:
        self.actions.append(("continue", headers))

    async def fetch(self, *, headers=None) -> FakeFetchedResponse:
        self.actions.append(("fetch", headers))
        if self.fetch_error is not None:
            raise self.fetch_error
        return FakeFetchedResponse(
            {"content-type": "text/html", "content-security-policy": "default-src 'self'"}
        )

    async def fulfill(self, *, response=None, headers=None) -> None:
        self.actions.append(("fulfill", headers))


class FakePage:
    def __init__(self, context: "FakeContext") -> None:
        self.context = context
        self.goto_calls: list[tuple[str, dict]] = []
        self.evaluated: list[str] = []
        self.closed = False

    async def goto(self, url: str, **kwargs) -> None:
        self.goto_calls.append((url, kwargs))
        for traffic_url in self.context.traffic:
            for callback in self.context.listeners.get("request", []):
                callback(FakeRequest(traffic_url))
        if self.context.goto_error is not None:
            raise self.context.goto_error

    async def evaluate(self, expression: str, arg=None):
        self.evaluated.append(expression)
        return None

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, traffic: list[str], goto_error: Exception | None = None) -> None:
        self.traffic = traffic
        self.goto_error = goto_error
        self.listeners: dict[str, list] = {}
        self.routes: list[str] = []
        self.pages: list[FakePage] = []
        self.saved_to: list[str] = []
        self.closed = False

    async def route(self, pattern: str, handler) -> None:
        self.routes.append(pattern)

    def on(self, event: str, callback) -> None:
        self.listeners.setdefault(event, []).append(callback)

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def storage_state(self, *, path: str) -> None:
        Path(path).write_text("{}", encoding="utf-8")
        self.saved_to.append(path)

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, traffic: list[str], goto_error: Exception | None = None, fail: bool = False) -> None:
        self.traffic = traffic
        self.goto_error = goto_error
        self.fail = fail
        self.context_kwargs: list[dict] = []
        self.contexts: list[FakeContext] = []
        self.closed = False

    async def new_context(self, **kwargs) -> FakeContext:
        if self.fail:
            raise PlaywrightError("Browser has been closed")
        self.context_kwargs.append(kwargs)
        context = FakeContext(self.traffic, self.goto_error)
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.closed = True


def _proxy(url: str) -> str:
    return f"http://127.0.0.1:9000/proxy?url={url}"


def _session(ceiling: float = 2.0) -> CaptureSession:
    return CaptureSession(PLAYER_URL, to_proxy_url=_proxy, debounce=0.05, ceiling=ceiling)


def _engine(tmp_path: Path, browser: FakeBrowser) -> BrowserEngine:
    engine = BrowserEngine(user_agent="Episodarr-Test", storage_path=tmp_path / "sessions" / "default.json")
    engine._browser = browser
    return engine


def test_capture_keeps_player_page_open_for_replay(tmp_path: Path) -> None:
    browser = FakeBrowser(["https://player.test/player.js", MASTER_URL])
    engine = _engine(tmp_path, browser)

    outcome = asyncio.run(engine.capture(PLAYER_URL, REFERER, _session()))

    assert [source.url for source in outcome.info.sources] == [_proxy(MASTER_URL)]
    assert browser.context_kwargs == [{"user_agent": "Episodarr-Test", "storage_state": None}]
    context = browser.contexts[0]
    assert context.routes == ["**/*"]
    page = context.pages[0]
    assert page.goto_calls[0][0] == PLAYER_URL
    assert page.goto_calls[0][1]["referer"] == REFERER
    assert page.closed is False
    assert page.evaluated, "playing media should be paused once capture finishes"
    assert isinstance(outcome.replay, PageReplaySession)
    assert (tmp_path / "sessions" / "default.json").read_text(encoding="utf-8") == "{}"


def test_next_capture_closes_previous_context_and_reuses_saved_state(tmp_path: Path) -> None:
    browser = FakeBrowser([MASTER_URL])
    engine = _engine(tmp_path, browser)
    state_path = tmp_path / "sessions" / "default.json"

    async def scenario():
        await engine.capture(PLAYER_URL, REFERER, _session())
        await engine.capture(PLAYER_URL, REFERER, _session())

    asyncio.run(scenario())

    first, second = browser.contexts
    assert first.closed is True
    assert second.closed is False
    assert browser.context_kwargs[1]["storage_state"] == str(state_path)

    asyncio.run(engine.close())
    assert second.closed is True
    assert browser.closed is True
    assert engine.running is False


def test_capture_timeout_closes_page_and_still_saves_state(tmp_path: Path) -> None:
    browser = FakeBrowser(["https://player.test/player.js"])
    engine = _engine(tmp_path, browser)

    with pytest.raises(CaptureTimeoutError):
        asyncio.run(engine.capture(PLAYER_URL, REFERER, _session(ceiling=0.1)))

    context = browser.contexts[0]
    assert context.pages[0].closed is True
    assert context.saved_to == [str(tmp_path / "sessions" / "default.json")]


def test_failed_top_frame_load_still_captures_media(tmp_path: Path) -> None:
    browser = FakeBrowser([MASTER_URL], goto_error=PlaywrightError("net::ERR_ABORTED"))
    engine = _engine(tmp_path, browser)

    outcome = asyncio.run(engine.capture(PLAYER_URL, REFERER, _session()))

    assert outcome.info.sources[0].url == _proxy(MASTER_URL)


def test_context_failure_is_reported_as_extraction_failure(tmp_path: Path) -> None:
    engine = _engine(tmp_path, FakeBrowser([], fail=True))

    with pytest.raises(ExtractionFailedError):
        asyncio.run(engine.capture(PLAYER_URL, REFERER, _session()))


def _route(engine: BrowserEngine, route: FakeRoute, request: FakeRequest) -> None:
    asyncio.run(engine._route_handler(PLAYER_URL)(route, request))


def test_route_hook_aborts_blocked_hosts() -> None:
    route = FakeRoute()

    _route(BrowserEngine(), route, FakeRequest("https://www.googletagmanager.com/gtm.js", "script"))

    assert route.actions == [("abort", None)]


def test_route_hook_continues_subresources_with_referer() -> None:
    route = FakeRoute()

    _route(BrowserEngine(), route, FakeRequest(MASTER_URL, "fetch", {"accept": "*/*"}))

    assert route.actions == [("continue", {"accept": "*/*", "Referer": PLAYER_URL})]


def test_route_hook_strips_security_headers_from_documents() -> None:
    route = FakeRoute()

    _route(BrowserEngine(), route, FakeRequest("https://embed.test/frame.html", "document"))

    assert route.actions == [
        ("fetch", {"Referer": PLAYER_URL}),
        ("fulfill", {"content-type": "text/html"}),
    ]


def test_route_hook_aborts_when_document_fetch_fails() -> None:
    route = FakeRoute(fetch_error=PlaywrightError("net::ERR_CONNECTION_RESET"))

    _route(BrowserEngine(), route, FakeRequest("https://embed.test/frame.html", "document"))

    assert route.actions[-1] == ("abort", None)


def test_route_hook_tolerates_abort_on_settled_route() -> None:
    route = FakeRoute(
        fetch_error=PlaywrightError("net::ERR_FAILED"),
        abort_error=PlaywrightError("Route is already handled!"),
    )

    _route(BrowserEngine(), route, FakeRequest("https://embed.test/frame.html", "document"))

    assert [action for action, _ in route.actions] == ["fetch", "abort"]
