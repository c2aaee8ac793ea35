"""
Per-source circuit breaker backed by pybreaker.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

import pybreaker

from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)


class BreakerState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_STATE_NAMES = {
    pybreaker.STATE_CLOSED: BreakerState.CLOSED,
    pybreaker.STATE_OPEN: BreakerState.OPEN,
    pybreaker.STATE_HALF_OPEN: BreakerState.HALF_OPEN,
}


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    source_id: str
    state: str
    failure_count: int
    failure_threshold: int
    cooldown_seconds: float
    last_failure_time: float | None
    next_attempt_time: float | None
    total_requests: int
    successful_requests: int


class _RecordedFailure(Exception):
    """Raised inside pybreaker.call to register an outcome that already happened."""


def _succeed() -> None:
    return None


def _fail() -> None:
    raise _RecordedFailure()


class _StateChangeLogger(pybreaker.CircuitBreakerListener):
    def __init__(self, source_id: str) -> None:
        self.source_id = source_id

    def state_change(self, cb, old_state, new_state) -> None:
        log_event(
            logger,
            logging.WARNING if new_state.name == pybreaker.STATE_OPEN else logging.INFO,
            "circuit_state_changed",
            source_id=self.source_id,
            old_state=_STATE_NAMES.get(old_state.name) if old_state else None,
            new_state=_STATE_NAMES.get(new_state.name, new_state.name),
            failure_count=cb.fail_counter,
        )


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker for one source.

    State and failure counting live in a `pybreaker.CircuitBreaker`; the
    source outcome is reported after the fact through `call`, so async
    parsers never run inside pybreaker. Cooldown timing uses the injected
    clock: OPEN rejects calls until `next_attempt_time`, then admits a
    HALF_OPEN trial whose outcome closes or reopens the breaker.
    """

    def __init__(
        self,
        source_id: str,
        *,
        failure_threshold: int,
        cooldown_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source_id = source_id
        self._clock = clock
        self._breaker = pybreaker.CircuitBreaker(
            fail_max=failure_threshold,
            reset_timeout=cooldown_seconds,
            listeners=[_StateChangeLogger(source_id)],
            name=source_id,
        )

        self.last_failure_time: float | None = None
        self._opened_at: float | None = None
        self.total_requests = 0
        self.successful_requests = 0

    @property
    def failure_threshold(self) -> int:
        return self._breaker.fail_max

    @property
    def cooldown_seconds(self) -> float:
        return self._breaker.reset_timeout

    @property
    def state(self) -> str:
        return _STATE_NAMES[self._breaker.current_state]

    @property
    def failure_count(self) -> int:
        return self._breaker.fail_counter

    @property
    def next_attempt_time(self) -> float | None:
        if self._breaker.current_state != pybreaker.STATE_OPEN or self._opened_at is None:
            return None
        return self._opened_at + self.cooldown_seconds

    def allow_request(self) -> bool:
        if self._breaker.current_state != pybreaker.STATE_OPEN:
            return True
        if self.retry_after():
            return False

        self._breaker.half_open()
        return True

    def record_success(self) -> None:
        self.total_requests += 1
        self.successful_requests += 1
        if self._breaker.current_state == pybreaker.STATE_OPEN:
            self._breaker.close()
        else:
            self._breaker.call(_succeed)
        self._opened_at = None

    def record_failure(self) -> None:
        now = self._clock()
        self.total_requests += 1
        self.last_failure_time = now
        if self._breaker.current_state == pybreaker.STATE_OPEN:
            return

        try:
            self._breaker.call(_fail)
        except (_RecordedFailure, pybreaker.CircuitBreakerError):
            pass
        if self._breaker.current_state == pybreaker.STATE_OPEN:
            self._opened_at = now

    def retry_after(self) -> float | None:
        """Seconds left in the cooldown, None unless OPEN."""
        deadline = self.next_attempt_time
        if deadline is None:
            return None
        return max(0.0, deadline - self._clock())

    def snapshot(self) -> CircuitBreakerSnapshot:
        return CircuitBreakerSnapshot(
            source_id=self.source_id,
            state=self.state,
            failure_count=self.failure_count,
            failure_threshold=self.failure_threshold,
            cooldown_seconds=self.cooldown_seconds,
            last_failure_time=self.last_failure_time,
            next_attempt_time=self.next_attempt_time,
            total_requests=self.total_requests,
            successful_requests=self.successful_requests,
        )
