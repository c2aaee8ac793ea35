"""
app/domain/execution.py

Result envelopes produced by source parser executions and batch runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.domain.menu import Offering


class ExtractionStatus:
    EXTRACTED = "extracted"
    CLOSED = "closed"
    EXTRACTION_FAILED = "extraction_failed"


@dataclass(frozen=True)
class ClosureInfo:
    """
    Outcome of closure detection on a menu container.
    """

    is_closed: bool
    reason: str
    indicators: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_closed": self.is_closed,
            "reason": self.reason,
            "indicators": list(self.indicators),
        }


@dataclass(frozen=True)
class ValidationDiagnostic:
    """
    Validation errors for one rejected candidate record.
    """

    index: int
    errors: tuple[str, ...]
    record: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "errors": list(self.errors)}


@dataclass(frozen=True)
class ExecutionMetadata:
    total_extracted: int
    valid_count: int
    invalid_count: int
    validation_errors: tuple[ValidationDiagnostic, ...]
    duration_ms: float
    timestamp: str
    parser: str
    extraction_status: str | None = None
    strategy: str | None = None
    closure: ClosureInfo | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_extracted": self.total_extracted,
            "valid_count": self.valid_count,
            "invalid_count": self.invalid_count,
            "validation_errors": [item.to_dict() for item in self.validation_errors],
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp,
            "parser": self.parser,
            "extraction_status": self.extraction_status,
            "strategy": self.strategy,
            "closure": self.closure.to_dict() if self.closure else None,
        }


@dataclass(frozen=True)
class ExecutionError:
    message: str
    code: str
    timestamp: str
    consecutive_failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "timestamp": self.timestamp,
            "consecutive_failures": self.consecutive_failures,
        }


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of one source parser execution.

    `offerings` only ever holds validator-approved records, so
    `metadata.valid_count == len(offerings)` always holds.
    """

    success: bool
    source: str
    url: str
    offerings: tuple[Offering, ...]
    metadata: ExecutionMetadata
    error: ExecutionError | None = None


@dataclass(frozen=True)
class ParserHealth:
    is_healthy: bool
    status: str
    consecutive_failures: int
    total_requests: int
    successful_requests: int
    success_rate: float
    last_successful: str | None = None
    last_error: dict[str, str] | None = None


@dataclass(frozen=True)
class ParsingSummary:
    total: int
    successful: int
    failed: int
    success_rate: float


@dataclass(frozen=True)
class OfferingSummary:
    total: int
    cached: int
    average_per_source: int


@dataclass(frozen=True)
class CachingSummary:
    successful: int
    failed: int
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class BatchRunSummary:
    """
    Aggregate statistics for one collection run across all sources.
    """

    parsing: ParsingSummary
    offerings: OfferingSummary
    caching: CachingSummary
