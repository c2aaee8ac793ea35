"""
app/domain package marker.
"""

from app.domain.execution import (
    BatchRunSummary,
    ClosureInfo,
    ExecutionError,
    ExecutionMetadata,
    ExecutionResult,
    ExtractionStatus,
    ParserHealth,
    ValidationDiagnostic,
)
from app.domain.menu import WEEKDAYS, Offering

__all__ = [
    "BatchRunSummary",
    "ClosureInfo",
    "ExecutionError",
    "ExecutionMetadata",
    "ExecutionResult",
    "ExtractionStatus",
    "Offering",
    "ParserHealth",
    "ValidationDiagnostic",
    "WEEKDAYS",
]
