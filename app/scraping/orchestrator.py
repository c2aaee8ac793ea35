"""
Resilience orchestrator: source registry, per-source circuit breakers and
bounded-concurrency fan-out over source parsers.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Callable
from urllib.parse import urlparse

from app.domain.execution import (
    ExecutionError,
    ExecutionMetadata,
    ExecutionResult,
    ParserHealth,
)
from app.scraping.base import SourceParser
from app.scraping.circuit_breaker import BreakerState, CircuitBreaker, CircuitBreakerSnapshot
from app.scraping.config.models import SourceDescriptor
from app.scraping.errors import CircuitOpenError, ConfigurationError, UnknownSourceError
from app.scraping.fetcher import FetchNode
from app.scraping.logging_utils import elapsed_ms, log_event, utc_timestamp
from app.scraping.parsing.selectors import SELECTOR_KEYS
from app.scraping.registry import ParserRegistry

logger = logging.getLogger(__name__)

SOURCE_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")
EXECUTION_ERROR_CODE = "EXECUTION_ERROR"
DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_COOLDOWN_SECONDS = 60.0


@dataclass
class SourceRunStats:
    created: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_ms: float = 0.0
    last_used: str | None = None

    def record(self, *, success: bool, response_ms: float) -> None:
        self.total_requests += 1
        if success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1
        self.average_response_ms = (
            self.average_response_ms * (self.total_requests - 1) + response_ms
        ) / self.total_requests
        self.last_used = utc_timestamp()


@dataclass
class _RegisteredSource:
    descriptor: SourceDescriptor
    parser: SourceParser
    breaker: CircuitBreaker
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    stats: SourceRunStats = field(default_factory=lambda: SourceRunStats(created=utc_timestamp()))


@dataclass(frozen=True)
class SourceHealth:
    source_id: str
    display_name: str
    parser_kind: str
    active: bool
    parser: ParserHealth
    breaker: CircuitBreakerSnapshot


@dataclass(frozen=True)
class OrchestratorStats:
    total_sources: int
    active_sources: int
    healthy_sources: int
    total_requests: int
    successful_requests: int
    success_rate: float
    breaker_states: dict[str, int]
    breakers: dict[str, CircuitBreakerSnapshot]
    parser_kinds: list[str]
    sources: dict[str, SourceRunStats]


class ResilienceOrchestrator:
    """
    Runs registered source parsers with failure isolation.

    One failing source never affects another: every execution produces an
    `ExecutionResult`, breakers are kept per source id and executions of
    the same id are serialized.
    """

    def __init__(
        self,
        *,
        fetch_node: FetchNode,
        registry: ParserRegistry | None = None,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_node = fetch_node
        self._registry = registry or ParserRegistry()
        self._failure_threshold = failure_threshold
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._sources: dict[str, _RegisteredSource] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, descriptor: SourceDescriptor) -> SourceParser:
        errors = self._validate_descriptor(descriptor)
        if errors:
            raise ConfigurationError(
                f"Invalid source descriptor '{descriptor.id}': " + "; ".join(errors),
                errors=errors,
            )

        parser = self._registry.create_parser(descriptor=descriptor, fetch_node=self._fetch_node)
        resilience = descriptor.resilience
        breaker = CircuitBreaker(
            descriptor.id,
            failure_threshold=resilience.failure_threshold or self._failure_threshold,
            cooldown_seconds=(
                resilience.cooldown_seconds
                if resilience.cooldown_seconds is not None
                else self._cooldown_seconds
            ),
            clock=self._clock,
        )
        self._sources[descriptor.id] = _RegisteredSource(
            descriptor=descriptor,
            parser=parser,
            breaker=breaker,
        )
        log_event(
            logger,
            logging.INFO,
            "source_registered",
            source_id=descriptor.id,
            parser_kind=descriptor.parser_kind,
            parser=parser.parser_name,
            failure_threshold=breaker.failure_threshold,
            cooldown_seconds=breaker.cooldown_seconds,
        )
        return parser

    def deregister(self, source_id: str) -> bool:
        removed = self._sources.pop(source_id, None)
        if removed is not None:
            log_event(logger, logging.INFO, "source_deregistered", source_id=source_id)
        return removed is not None

    def source_ids(self, *, active_only: bool = False) -> list[str]:
        return [
            source_id
            for source_id, source in self._sources.items()
            if source.descriptor.active or not active_only
        ]

    def descriptor(self, source_id: str) -> SourceDescriptor:
        return self._get(source_id).descriptor

    def parser(self, source_id: str) -> SourceParser:
        return self._get(source_id).parser

    def _get(self, source_id: str) -> _RegisteredSource:
        source = self._sources.get(source_id)
        if source is None:
            raise UnknownSourceError(source_id)
        return source

    def _validate_descriptor(self, descriptor: SourceDescriptor) -> list[str]:
        errors: list[str] = []

        if not isinstance(descriptor.id, str) or not SOURCE_ID_PATTERN.match(descriptor.id):
            errors.append("id must match ^[a-z0-9-]+$")
        elif descriptor.id in self._sources:
            errors.append(f"source '{descriptor.id}' is already registered")

        if not isinstance(descriptor.display_name, str) or not descriptor.display_name.strip():
            errors.append("display_name is required")

        parsed_url = urlparse(descriptor.target_url or "")
        if parsed_url.scheme not in {"http", "https"} or not parsed_url.netloc:
            errors.append("target_url must be an absolute http(s) URL")

        if not descriptor.parser_class and not self._registry.knows(descriptor.parser_kind or ""):
            errors.append(f"unknown parser kind: {descriptor.parser_kind}")

        threshold = descriptor.resilience.failure_threshold
        if threshold is not None and threshold <= 0:
            errors.append("failure_threshold must be positive")
        cooldown = descriptor.resilience.cooldown_seconds
        if cooldown is not None and cooldown < 0:
            errors.append("cooldown_seconds must not be negative")

        unknown_groups = sorted(set(descriptor.selectors) - SELECTOR_KEYS)
        if unknown_groups:
            errors.append("unknown selector groups: " + ", ".join(unknown_groups))

        return errors

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, source_id: str) -> ExecutionResult:
        """
        Execute one source behind its circuit breaker.

        Raises:
            UnknownSourceError: If `source_id` is not registered.
        """

        source = self._get(source_id)
        async with source.lock:
            started = time.perf_counter()
            if not source.breaker.allow_request():
                result = self._circuit_open_result(source)
                source.stats.record(success=False, response_ms=elapsed_ms(started))
                log_event(
                    logger,
                    logging.WARNING,
                    "source_short_circuited",
                    source_id=source_id,
                    retry_after_seconds=source.breaker.retry_after(),
                )
                return result

            try:
                result = await source.parser.execute()
            except Exception:
                source.breaker.record_failure()
                source.stats.record(success=False, response_ms=elapsed_ms(started))
                raise

            if result.success:
                source.breaker.record_success()
            else:
                source.breaker.record_failure()
            source.stats.record(success=result.success, response_ms=elapsed_ms(started))

            log_event(
                logger,
                logging.INFO,
                "source_executed",
                source_id=source_id,
                success=result.success,
                offering_count=len(result.offerings),
                breaker_state=source.breaker.state,
                duration_ms=elapsed_ms(started),
            )
            return result

    async def execute_all(
        self,
        source_ids: Sequence[str] | None = None,
        *,
        max_concurrency: int = 5,
        continue_on_error: bool = True,
    ) -> list[ExecutionResult]:
        """
        Execute sources in waves of at most `max_concurrency`.

        Each wave settles completely before the next starts. Results are in
        submission order. With `continue_on_error` raised errors become
        failed results; otherwise the first one propagates once its wave
        has settled and later waves are not started.
        """

        selected = list(source_ids) if source_ids is not None else self.source_ids(active_only=True)
        wave_size = max(1, int(max_concurrency))
        log_event(
            logger,
            logging.INFO,
            "execute_all_started",
            total_sources=len(selected),
            max_concurrency=wave_size,
            continue_on_error=continue_on_error,
        )

        results: list[ExecutionResult] = []
        for start in range(0, len(selected), wave_size):
            wave = selected[start : start + wave_size]
            settled = await asyncio.gather(
                *(self.execute(source_id) for source_id in wave),
                return_exceptions=True,
            )
            for source_id, outcome in zip(wave, settled):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    if not continue_on_error:
                        raise outcome
                    outcome = self._exception_result(source_id, outcome)
                results.append(outcome)

        log_event(
            logger,
            logging.INFO,
            "execute_all_completed",
            total_sources=len(results),
            successful=sum(1 for result in results if result.success),
        )
        return results

    def _circuit_open_result(self, source: _RegisteredSource) -> ExecutionResult:
        timestamp = utc_timestamp()
        error = CircuitOpenError(source.descriptor.id, retry_at=source.breaker.next_attempt_time)
        return ExecutionResult(
            success=False,
            source=source.descriptor.display_name,
            url=source.descriptor.target_url,
            offerings=(),
            metadata=_empty_metadata(timestamp, parser=source.parser.parser_name),
            error=ExecutionError(
                message=str(error),
                code=error.code,
                timestamp=timestamp,
                consecutive_failures=source.parser.consecutive_failures,
            ),
        )

    def _exception_result(self, source_id: str, exc: BaseException) -> ExecutionResult:
        timestamp = utc_timestamp()
        source = self._sources.get(source_id)
        log_event(
            logger,
            logging.ERROR,
            "source_execution_error",
            source_id=source_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return ExecutionResult(
            success=False,
            source=source.descriptor.display_name if source else source_id,
            url=source.descriptor.target_url if source else "",
            offerings=(),
            metadata=_empty_metadata(
                timestamp,
                parser=source.parser.parser_name if source else "unknown",
            ),
            error=ExecutionError(
                message=str(exc) or type(exc).__name__,
                code=EXECUTION_ERROR_CODE,
                timestamp=timestamp,
            ),
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def breaker_snapshot(self, source_id: str) -> CircuitBreakerSnapshot:
        return self._get(source_id).breaker.snapshot()

    def health(self, source_id: str) -> SourceHealth:
        source = self._get(source_id)
        return SourceHealth(
            source_id=source_id,
            display_name=source.descriptor.display_name,
            parser_kind=source.descriptor.parser_kind,
            active=source.descriptor.active,
            parser=source.parser.health_status(),
            breaker=source.breaker.snapshot(),
        )

    def health_report(self) -> list[SourceHealth]:
        return [self.health(source_id) for source_id in self._sources]

    def stats(self) -> OrchestratorStats:
        sources = {
            source_id: replace(source.stats) for source_id, source in self._sources.items()
        }
        breakers = {
            source_id: source.breaker.snapshot() for source_id, source in self._sources.items()
        }
        breaker_states = {BreakerState.CLOSED: 0, BreakerState.OPEN: 0, BreakerState.HALF_OPEN: 0}
        for snapshot in breakers.values():
            breaker_states[snapshot.state] += 1

        total_requests = sum(item.total_requests for item in sources.values())
        successful_requests = sum(item.successful_requests for item in sources.values())
        success_rate = (
            round(successful_requests / total_requests * 100.0, 1) if total_requests else 0.0
        )
        return OrchestratorStats(
            total_sources=len(self._sources),
            active_sources=len(self.source_ids(active_only=True)),
            healthy_sources=sum(
                1 for source in self._sources.values() if source.parser.is_healthy
            ),
            total_requests=total_requests,
            successful_requests=successful_requests,
            success_rate=success_rate,
            breaker_states=breaker_states,
            breakers=breakers,
            parser_kinds=self._registry.kinds(),
            sources=sources,
        )

    def close(self) -> None:
        self._sources.clear()
        log_event(logger, logging.INFO, "orchestrator_closed")


def _empty_metadata(timestamp: str, *, parser: str) -> ExecutionMetadata:
    return ExecutionMetadata(
        total_extracted=0,
        valid_count=0,
        invalid_count=0,
        validation_errors=(),
        duration_ms=0.0,
        timestamp=timestamp,
        parser=parser,
    )
