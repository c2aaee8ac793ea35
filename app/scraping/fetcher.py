"""
HTTP document fetcher backed by requests and BeautifulSoup.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import requests
from bs4 import BeautifulSoup, Tag

from app.scraping.errors import RetryExhaustedError, SourceUnavailable
from app.scraping.logging_utils import log_event
from app.scraping.retry import RETRYABLE_STATUS_CODES, RetryPolicy, retry_async

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "LunchtableBot/0.1 (+https://example.invalid/lunchtable)"

FetchNode = Callable[[str, str], Awaitable["Tag | None"]]


class RequestsDocumentFetcher:
    """
    Fetch a page and return the node matching a CSS selector.

    Blocking requests calls run in a worker thread so the event loop stays
    free for other sources.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds
        self.request_headers = {"User-Agent": user_agent}
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def __call__(self, url: str, selector: str) -> Tag | None:
        return await self.fetch_node(url, selector)

    async def fetch_node(self, url: str, selector: str) -> Tag | None:
        try:
            html = await retry_async(
                lambda: asyncio.to_thread(self._get_text, url),
                policy=self.retry_policy,
                operation_name=f"fetch {url}",
                sleep=self._sleep,
            )
        except RetryExhaustedError as exc:
            raise SourceUnavailable(
                f"Failed to fetch {url} after {exc.attempts} attempt(s): {exc.last_error}",
                url=url,
            ) from exc
        except requests.RequestException as exc:
            raise SourceUnavailable(f"Failed to fetch {url}: {exc}", url=url) from exc

        if not html or not html.strip():
            raise SourceUnavailable(f"Empty document returned by {url}", url=url)

        soup = BeautifulSoup(html, "html.parser")
        node = soup.select_one(selector)
        log_event(
            logger,
            logging.INFO,
            "document_fetched",
            url=url,
            selector=selector,
            matched=node is not None,
            size=len(html),
        )
        return node

    def _get_text(self, url: str) -> str:
        response = self.session.get(
            url,
            headers=self.request_headers,
            timeout=self.timeout_seconds,
            allow_redirects=True,
        )
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise requests.HTTPError(
                f"Retryable status={response.status_code}",
                response=response,
            )
        response.raise_for_status()
        return response.text

    def close(self) -> None:
        self.session.close()
