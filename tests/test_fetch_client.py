import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import aiohttp
import pytest

import config
from errors import NetworkError, ParseError, RenderError, UpstreamStatusError
from services.fetch_client import FetchClient, RawDocument, merge_headers


class FakeResponse:
    def __init__(self, status=200, text="<html></html>", url="https://example.test/"):
        self.status = status
        self._text = text
        self.url = url
        self.headers = {"Content-Type": "text/html"}

    async def text(self, errors="strict"):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


class FakeRenderPool:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    async def render(self, url, *, headers=None, page_actions=None, timeout_seconds=None):
        self.calls.append((url, headers, page_actions))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    monkeypatch.setattr(config, "FETCH_RETRY_MIN_SECONDS", 0)
    monkeypatch.setattr(config, "FETCH_RETRY_MAX_SECONDS", 0)
    monkeypatch.setattr(config, "FETCH_MAX_ATTEMPTS", 3)
    monkeypatch.setattr(config, "RENDER_MAX_ATTEMPTS", 2)


def test_successful_fetch_returns_raw_document():
    session = FakeSession([FakeResponse(text="<p>hi</p>", url="https://example.test/final")])
    client = FetchClient(session=session)

    document = asyncio.run(client.fetch("https://example.test/start", params={"page": 2}))

    assert document.status == 200
    assert document.url == "https://example.test/final"
    assert document.soup().select_one("p").get_text() == "hi"
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert kwargs["params"] == {"page": "2"}
    assert kwargs["headers"]["User-Agent"] == config.CRAWLER_HEADERS["User-Agent"]


def test_non_2xx_raises_status_error_without_retry():
    session = FakeSession([FakeResponse(status=503)])
    client = FetchClient(session=session)

    with pytest.raises(UpstreamStatusError) as excinfo:
        asyncio.run(client.fetch("https://example.test/"))

    assert excinfo.value.status == 503
    assert len(session.calls) == 1


def test_connection_errors_are_retried_then_succeed():
    session = FakeSession(
        [
            aiohttp.ClientConnectionError("reset"),
            asyncio.TimeoutError(),
            FakeResponse(text="ok"),
        ]
    )
    client = FetchClient(session=session)

    document = asyncio.run(client.fetch("https://example.test/"))

    assert document.text == "ok"
    assert len(session.calls) == 3


def test_retries_are_bounded_and_surface_network_error():
    session = FakeSession([asyncio.TimeoutError() for _ in range(5)])
    client = FetchClient(session=session)

    with pytest.raises(NetworkError):
        asyncio.run(client.fetch("https://example.test/"))

    assert len(session.calls) == 3


def test_render_fetch_goes_through_render_pool_with_retry():
    pool = FakeRenderPool([RenderError("timeout"), (200, "<div id='x'>rendered</div>")])
    client = FetchClient(session=FakeSession([]), render_pool=pool)

    document = asyncio.run(client.fetch("https://example.test/js", render=True))

    assert document.soup().select_one("#x").get_text() == "rendered"
    assert len(pool.calls) == 2


def test_render_status_error_is_not_retried():
    pool = FakeRenderPool([(404, "<html></html>")])
    client = FetchClient(session=FakeSession([]), render_pool=pool)

    with pytest.raises(UpstreamStatusError):
        asyncio.run(client.fetch("https://example.test/missing", render=True))

    assert len(pool.calls) == 1


def test_close_leaves_injected_session_open_but_closes_render_pool():
    session = FakeSession([])
    pool = FakeRenderPool([])
    client = FetchClient(session=session, render_pool=pool)

    asyncio.run(client.close())

    assert session.closed is False
    assert pool.closed is True


def test_merge_headers_is_case_insensitive():
    merged = merge_headers({"User-Agent": "desktop", "Accept": "*/*"}, {"user-agent": "okhttp/5.1.0"})

    assert merged == {"Accept": "*/*", "user-agent": "okhttp/5.1.0"}


def test_json_decode_failure_is_parse_error():
    document = RawDocument(url="https://api.test/", status=200, text="<html>not json</html>")

    with pytest.raises(ParseError):
        document.json()
