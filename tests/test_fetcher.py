"""
tests/test_fetcher.py

RequestsDocumentFetcher against a stubbed requests session.
"""

from __future__ import annotations

import asyncio

import pytest
import requests

from app.scraping.errors import SourceUnavailable
from app.scraping.fetcher import RequestsDocumentFetcher
from app.scraping.retry import RetryPolicy
from tests.html_fixtures import table_page

URL = "https://restaurangniagara.se/lunch/"


class StubResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error", response=self)


class StubSession:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []
        self.closed = False

    def get(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _fetcher(session: StubSession, sleep: SleepRecorder | None = None) -> RequestsDocumentFetcher:
    return RequestsDocumentFetcher(
        session=session,
        timeout_seconds=5.0,
        user_agent="LunchtableTest/1.0",
        retry_policy=RetryPolicy(max_attempts=3, base_delay_seconds=0.5, jitter_ratio=0.0),
        sleep=sleep or SleepRecorder(),
    )


class TestRequestsDocumentFetcher:
    def test_returns_selected_node(self) -> None:
        session = StubSession(StubResponse(text=table_page()))

        node = asyncio.run(_fetcher(session)(URL, "div.lunch"))

        assert node is not None
        assert node.name == "div"
        assert len(node.select("table")) == 5
        assert session.calls == [
            {
                "url": URL,
                "headers": {"User-Agent": "LunchtableTest/1.0"},
                "timeout": 5.0,
                "allow_redirects": True,
            }
        ]

    def test_selector_without_match(self) -> None:
        session = StubSession(StubResponse(text="<html><body><p>Hej</p></body></html>"))

        assert asyncio.run(_fetcher(session).fetch_node(URL, "div.lunch")) is None

    def test_retries_server_errors(self) -> None:
        sleep = SleepRecorder()
        session = StubSession(StubResponse(503), StubResponse(text=table_page()))

        node = asyncio.run(_fetcher(session, sleep).fetch_node(URL, "body"))

        assert node is not None
        assert len(session.calls) == 2
        assert sleep.delays == [0.5]

    def test_retries_timeouts_then_gives_up(self) -> None:
        sleep = SleepRecorder()
        session = StubSession(requests.Timeout("read timed out"))

        with pytest.raises(SourceUnavailable, match="after 3 attempt"):
            asyncio.run(_fetcher(session, sleep).fetch_node(URL, "body"))

        assert len(session.calls) == 3
        assert sleep.delays == [0.5, 1.0]

    def test_client_errors_are_not_retried(self) -> None:
        session = StubSession(StubResponse(404))

        with pytest.raises(SourceUnavailable, match="Failed to fetch") as exc_info:
            asyncio.run(_fetcher(session).fetch_node(URL, "body"))

        assert len(session.calls) == 1
        assert exc_info.value.url == URL

    def test_empty_body(self) -> None:
        session = StubSession(StubResponse(text="   "))

        with pytest.raises(SourceUnavailable, match="Empty document"):
            asyncio.run(_fetcher(session).fetch_node(URL, "body"))

    def test_close_closes_session(self) -> None:
        session = StubSession(StubResponse(text="x"))
        fetcher = _fetcher(session)

        fetcher.close()

        assert session.closed is True
