"""
Source parser contract and the shared execution wrapper.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from app.domain.execution import (
    ExecutionError,
    ExecutionMetadata,
    ExecutionResult,
    ParserHealth,
)
from app.scraping.errors import ValidationError, error_code
from app.scraping.logging_utils import elapsed_ms, log_event, utc_timestamp
from app.scraping.types import ExtractionOutcome
from app.validators.offering_validator import BatchValidationResult, validate_offerings

if TYPE_CHECKING:
    from app.scraping.config.models import SourceDescriptor
    from app.scraping.fetcher import FetchNode

logger = logging.getLogger(__name__)

UNHEALTHY_AFTER_FAILURES = 3


class SourceParser(ABC):
    """
    Base class for one menu source.

    Subclasses implement `produce_offerings`, `name` and `target_url`;
    `execute` wraps them with timing, validation, error capture and
    health bookkeeping.
    """

    def __init__(
        self,
        *,
        descriptor: "SourceDescriptor | None" = None,
        fetch_node: "FetchNode | None" = None,
    ) -> None:
        self.descriptor = descriptor
        self.fetch_node = fetch_node
        self.reset_state()

    @abstractmethod
    async def produce_offerings(self) -> ExtractionOutcome:
        """
        Fetch and extract candidate records for the current menu.
        """

    @abstractmethod
    def name(self) -> str:
        """Display name of the source."""

    @abstractmethod
    def target_url(self) -> str:
        """URL the menu is read from."""

    @property
    def parser_name(self) -> str:
        return type(self).__name__

    @property
    def is_healthy(self) -> bool:
        return self.consecutive_failures < UNHEALTHY_AFTER_FAILURES

    async def execute(self) -> ExecutionResult:
        """
        Run one extraction and return a result; never raises for
        failures inside the source.
        """

        started = time.perf_counter()
        self.total_requests += 1

        validation: BatchValidationResult | None = None
        try:
            source, url = self.name(), self.target_url()
            log_event(
                logger,
                logging.INFO,
                "parser_execution_started",
                source=source,
                url=url,
                attempt=self.total_requests,
            )
            outcome = await self.produce_offerings()
            validation = validate_offerings(outcome.records)
            if validation.total_count > 0 and validation.valid_count == 0:
                raise ValidationError(
                    f"All {validation.total_count} lunch items failed validation"
                )
        except Exception as exc:
            return self._failure_result(exc, started, validation)

        self.consecutive_failures = 0
        self.successful_requests += 1
        self.last_successful = utc_timestamp()

        duration = elapsed_ms(started)
        log_event(
            logger,
            logging.INFO,
            "parser_execution_succeeded",
            source=source,
            strategy=outcome.strategy,
            extraction_status=outcome.status,
            total_items=validation.total_count,
            valid_items=validation.valid_count,
            invalid_items=validation.invalid_count,
            duration_ms=duration,
        )
        return ExecutionResult(
            success=True,
            source=source,
            url=url,
            offerings=tuple(validation.valid_records),
            metadata=ExecutionMetadata(
                total_extracted=validation.total_count,
                valid_count=validation.valid_count,
                invalid_count=validation.invalid_count,
                validation_errors=tuple(validation.validation_errors),
                duration_ms=duration,
                timestamp=utc_timestamp(),
                parser=self.parser_name,
                extraction_status=outcome.status,
                strategy=outcome.strategy,
                closure=outcome.closure,
            ),
        )

    def _failure_result(
        self,
        exc: Exception,
        started: float,
        validation: BatchValidationResult | None,
    ) -> ExecutionResult:
        timestamp = utc_timestamp()
        self.consecutive_failures += 1
        self.last_error = {"message": str(exc), "timestamp": timestamp}

        duration = elapsed_ms(started)
        source, url = self._identity()
        log_event(
            logger,
            logging.ERROR,
            "parser_execution_failed",
            source=source,
            error=str(exc),
            error_type=type(exc).__name__,
            consecutive_failures=self.consecutive_failures,
            is_healthy=self.is_healthy,
            duration_ms=duration,
        )
        return ExecutionResult(
            success=False,
            source=source,
            url=url,
            offerings=(),
            metadata=ExecutionMetadata(
                total_extracted=validation.total_count if validation else 0,
                valid_count=0,
                invalid_count=validation.invalid_count if validation else 0,
                validation_errors=tuple(validation.validation_errors) if validation else (),
                duration_ms=duration,
                timestamp=timestamp,
                parser=self.parser_name,
            ),
            error=ExecutionError(
                message=str(exc),
                code=error_code(exc),
                timestamp=timestamp,
                consecutive_failures=self.consecutive_failures,
            ),
        )

    def _identity(self) -> tuple[str, str]:
        """Source name and URL, or the class name when the source cannot say."""
        try:
            return self.name(), self.target_url()
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "parser_identity_unavailable",
                parser=self.parser_name,
                error=str(exc),
            )
            return self.parser_name, ""

    def health_status(self) -> ParserHealth:

        success_rate = (
            round(self.successful_requests / self.total_requests * 100.0, 1)
            if self.total_requests
            else 0.0
        )
        return ParserHealth(
            is_healthy=self.is_healthy,
            status="healthy" if self.is_healthy else "unhealthy",
            consecutive_failures=self.consecutive_failures,
            total_requests=self.total_requests,
            successful_requests=self.successful_requests,
            success_rate=success_rate,
            last_successful=self.last_successful,
            last_error=self.last_error,
        )

    def reset_state(self) -> None:
        self.total_requests = 0
        self.successful_requests = 0
        self.consecutive_failures = 0
        self.last_successful: str | None = None
        self.last_error: dict[str, str] | None = None

    def __repr__(self) -> str:
        return f"{self.parser_name}({self.name()!r})"
