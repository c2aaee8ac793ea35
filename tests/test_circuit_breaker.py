"""
tests/test_circuit_breaker.py

State transitions of the per-source circuit breaker under a fake clock.
"""

from __future__ import annotations

import json
import logging

from app.scraping.circuit_breaker import BreakerState, CircuitBreaker
from tests.support import FakeClock


def _breaker(clock: FakeClock, *, threshold: int = 2, cooldown: float = 60.0) -> CircuitBreaker:
    return CircuitBreaker(
        "niagara",
        failure_threshold=threshold,
        cooldown_seconds=cooldown,
        clock=clock,
    )


class TestCircuitBreaker:
    def test_starts_closed(self) -> None:
        breaker = _breaker(FakeClock())

        assert breaker.state == BreakerState.CLOSED
        assert breaker.allow_request() is True
        assert breaker.retry_after() is None

    def test_opens_at_threshold(self) -> None:
        clock = FakeClock()
        breaker = _breaker(clock)

        breaker.record_failure()
        assert breaker.state == BreakerState.CLOSED

        breaker.record_failure()
        assert breaker.state == BreakerState.OPEN
        assert breaker.next_attempt_time == clock.now + 60.0
        assert breaker.allow_request() is False
        assert breaker.retry_after() == 60.0

    def test_success_resets_failure_count(self) -> None:
        breaker = _breaker(FakeClock())

        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()

        assert breaker.state == BreakerState.CLOSED
        assert breaker.failure_count == 1

    def test_half_open_trial_success_closes(self) -> None:
        clock = FakeClock()
        breaker = _breaker(clock)
        breaker.record_failure()
        breaker.record_failure()

        clock.advance(59.0)
        assert breaker.allow_request() is False

        clock.advance(1.0)
        assert breaker.allow_request() is True
        assert breaker.state == BreakerState.HALF_OPEN

        breaker.record_success()
        assert breaker.state == BreakerState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.next_attempt_time is None

    def test_half_open_trial_failure_reopens(self) -> None:
        clock = FakeClock()
        breaker = _breaker(clock, threshold=5, cooldown=10.0)
        for _ in range(5):
            breaker.record_failure()

        clock.advance(10.0)
        assert breaker.allow_request() is True

        breaker.record_failure()
        assert breaker.state == BreakerState.OPEN
        assert breaker.next_attempt_time == clock.now + 10.0
        assert breaker.allow_request() is False

    def test_snapshot_counts_requests(self) -> None:
        breaker = _breaker(FakeClock(), threshold=3)
        breaker.record_success()
        breaker.record_failure()

        snapshot = breaker.snapshot()

        assert snapshot.source_id == "niagara"
        assert snapshot.state == BreakerState.CLOSED
        assert snapshot.failure_count == 1
        assert snapshot.failure_threshold == 3
        assert snapshot.total_requests == 2
        assert snapshot.successful_requests == 1
        assert snapshot.last_failure_time == 1000.0

    def test_state_changes_are_logged(self, caplog) -> None:
        clock = FakeClock()
        breaker = _breaker(clock, threshold=1, cooldown=5.0)

        with caplog.at_level(logging.INFO, logger="app.scraping.circuit_breaker"):
            breaker.record_failure()
            clock.advance(5.0)
            breaker.allow_request()
            breaker.record_success()

        transitions = [
            (payload["old_state"], payload["new_state"])
            for payload in (json.loads(record.getMessage()) for record in caplog.records)
            if payload["event"] == "circuit_state_changed"
        ]
        assert transitions == [
            (BreakerState.CLOSED, BreakerState.OPEN),
            (BreakerState.OPEN, BreakerState.HALF_OPEN),
            (BreakerState.HALF_OPEN, BreakerState.CLOSED),
        ]
