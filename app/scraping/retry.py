"""
Retry with exponential backoff for fetches and cache operations.

Only transient failures are retried. Anything else propagates on the
first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import requests
from sqlalchemy.exc import OperationalError

from app.scraping.errors import RetryExhaustedError, SourceUnavailable
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
TRANSIENT_ERROR_CODES = frozenset(
    {
        "ThrottlingException",
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ServiceUnavailable",
        "RequestTimeout",
        "TimeoutError",
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 0.1
    max_delay_seconds: float = 5.0
    jitter_ratio: float = 0.1

    def delay_for(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """
        Backoff before retry number `attempt` (0-based), jittered by
        +/- `jitter_ratio`.
        """

        capped = min(self.base_delay_seconds * (2**attempt), self.max_delay_seconds)
        factor = 1.0 + self.jitter_ratio * (2.0 * rand() - 1.0)
        return max(0.0, capped * factor)


def _status_code_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    if response is not None and isinstance(getattr(response, "status_code", None), int):
        return response.status_code
    return None


def is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, (requests.Timeout, requests.ConnectionError, SourceUnavailable)):
        return True
    if isinstance(exc, (OperationalError, asyncio.TimeoutError)):
        return True

    status = _status_code_of(exc)
    if status is not None and (status >= 500 or status == 429):
        return True

    code = getattr(exc, "code", None)
    return isinstance(code, str) and code in TRANSIENT_ERROR_CODES


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    operation_name: str,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """
    Await `operation` until it succeeds or the policy is exhausted.

    Raises:
        Exception: The first non-retryable error, unchanged.
        RetryExhaustedError: When every attempt failed with a retryable error.
    """

    history: list[BaseException] = []
    attempts = max(1, policy.max_attempts)

    for attempt in range(attempts):
        try:
            result = await operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            history.append(exc)
            if attempt + 1 >= attempts:
                break
            delay = policy.delay_for(attempt, rand)
            log_event(
                logger,
                logging.WARNING,
                "retry_scheduled",
                operation=operation_name,
                attempt=attempt + 1,
                max_attempts=attempts,
                delay_seconds=round(delay, 4),
                error=str(exc),
            )
            await sleep(delay)
            continue

        if attempt > 0:
            log_event(
                logger,
                logging.INFO,
                "retry_succeeded",
                operation=operation_name,
                attempt=attempt + 1,
            )
        return result

    log_event(
        logger,
        logging.ERROR,
        "retry_exhausted",
        operation=operation_name,
        attempts=attempts,
        error=str(history[-1]),
    )
    raise RetryExhaustedError(
        operation_name=operation_name,
        attempts=attempts,
        last_error=history[-1],
        history=history,
    )
