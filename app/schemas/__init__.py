"""
app/schemas package marker.
"""

from app.schemas.menus import (
    BatchRunSummaryResponse,
    CollectionReportResponse,
    ExecutionResultResponse,
    MenuResponse,
    OfferingResponse,
    SourceHealthResponse,
    SourceMenuResponse,
    SourcesHealthResponse,
    WeeklyMenusResponse,
)

__all__ = [
    "BatchRunSummaryResponse",
    "CollectionReportResponse",
    "ExecutionResultResponse",
    "MenuResponse",
    "OfferingResponse",
    "SourceHealthResponse",
    "SourceMenuResponse",
    "SourcesHealthResponse",
    "WeeklyMenusResponse",
]
