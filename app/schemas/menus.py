"""
app/schemas/menus.py

Response schemas for menu collection and source health endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.domain.execution import BatchRunSummary, ExecutionResult
from app.domain.menu import Offering
from app.scraping.orchestrator import SourceHealth
from app.services.menu_collection_service import WeeklyMenus


class OfferingResponse(BaseModel):
    name: str
    description: str = ""
    price: int = Field(..., ge=0)
    weekday: str
    week: int = Field(..., ge=1, le=53)
    source_name: str

    @classmethod
    def from_offering(cls, offering: Offering) -> "OfferingResponse":
        return cls(**offering.to_dict())


class ClosureResponse(BaseModel):
    is_closed: bool
    reason: str
    indicators: list[str] = Field(default_factory=list)


class ExecutionErrorResponse(BaseModel):
    message: str
    code: str
    timestamp: str
    consecutive_failures: int = Field(default=0, ge=0)


class ExecutionResultResponse(BaseModel):
    """
    API response model for one source execution.
    """

    success: bool
    source: str
    url: str
    offerings: list[OfferingResponse] = Field(default_factory=list)
    total_extracted: int = Field(..., ge=0)
    valid_count: int = Field(..., ge=0)
    invalid_count: int = Field(..., ge=0)
    duration_ms: float = Field(..., ge=0)
    extraction_status: str | None = None
    strategy: str | None = None
    closure: ClosureResponse | None = None
    error: ExecutionErrorResponse | None = None

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecutionResultResponse":
        metadata = result.metadata
        return cls(
            success=result.success,
            source=result.source,
            url=result.url,
            offerings=[OfferingResponse.from_offering(item) for item in result.offerings],
            total_extracted=metadata.total_extracted,
            valid_count=metadata.valid_count,
            invalid_count=metadata.invalid_count,
            duration_ms=metadata.duration_ms,
            extraction_status=metadata.extraction_status,
            strategy=metadata.strategy,
            closure=ClosureResponse(**metadata.closure.to_dict()) if metadata.closure else None,
            error=ExecutionErrorResponse(**result.error.to_dict()) if result.error else None,
        )


class ParsingSummaryResponse(BaseModel):
    total: int = Field(..., ge=0)
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    success_rate: float = Field(..., ge=0, le=100)


class OfferingSummaryResponse(BaseModel):
    total: int = Field(..., ge=0)
    cached: int = Field(..., ge=0)
    average_per_source: int = Field(..., ge=0)


class CachingSummaryResponse(BaseModel):
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    errors: list[dict[str, str]] = Field(default_factory=list)


class BatchRunSummaryResponse(BaseModel):
    parsing: ParsingSummaryResponse
    offerings: OfferingSummaryResponse
    caching: CachingSummaryResponse

    @classmethod
    def from_summary(cls, summary: BatchRunSummary) -> "BatchRunSummaryResponse":
        return cls(
            parsing=ParsingSummaryResponse(
                total=summary.parsing.total,
                successful=summary.parsing.successful,
                failed=summary.parsing.failed,
                success_rate=summary.parsing.success_rate,
            ),
            offerings=OfferingSummaryResponse(
                total=summary.offerings.total,
                cached=summary.offerings.cached,
                average_per_source=summary.offerings.average_per_source,
            ),
            caching=CachingSummaryResponse(
                successful=summary.caching.successful,
                failed=summary.caching.failed,
                errors=summary.caching.errors,
            ),
        )


class CollectionReportResponse(BaseModel):
    results: list[ExecutionResultResponse]
    summary: BatchRunSummaryResponse


class MenuResponse(BaseModel):
    source_id: str
    week: int = Field(..., ge=1, le=53)
    year: int
    offerings: list[OfferingResponse]


class SourceMenuResponse(MenuResponse):
    display_name: str
    is_fallback: bool = False


class WeeklyMenusResponse(BaseModel):
    """
    Cached menus across active sources; `week` is the requested week even
    when some sources fell back to the previous one.
    """

    week: int = Field(..., ge=1, le=53)
    year: int
    day: str | None = None
    total_offerings: int = Field(..., ge=0)
    fallbacks: int = Field(..., ge=0)
    menus: list[SourceMenuResponse] = Field(default_factory=list)
    missing_sources: list[str] = Field(default_factory=list)

    @classmethod
    def from_weekly_menus(cls, weekly: WeeklyMenus) -> "WeeklyMenusResponse":
        return cls(
            week=weekly.week,
            year=weekly.year,
            day=weekly.day,
            total_offerings=len(weekly.offerings),
            fallbacks=weekly.fallbacks,
            menus=[
                SourceMenuResponse(
                    source_id=menu.source_id,
                    display_name=menu.display_name,
                    week=menu.week,
                    year=menu.year,
                    is_fallback=menu.is_fallback,
                    offerings=[OfferingResponse.from_offering(item) for item in menu.offerings],
                )
                for menu in weekly.menus
            ],
            missing_sources=list(weekly.missing),
        )



class SourceHealthResponse(BaseModel):
    """
    Parser health and circuit breaker state for one source.
    """

    source_id: str
    display_name: str
    parser_kind: str
    active: bool
    is_healthy: bool
    status: str
    consecutive_failures: int = Field(..., ge=0)
    total_requests: int = Field(..., ge=0)
    successful_requests: int = Field(..., ge=0)
    success_rate: float = Field(..., ge=0, le=100)
    last_successful: str | None = None
    last_error: dict[str, str] | None = None
    breaker_state: str
    breaker_failure_count: int = Field(..., ge=0)

    @classmethod
    def from_health(cls, health: SourceHealth) -> "SourceHealthResponse":
        return cls(
            source_id=health.source_id,
            display_name=health.display_name,
            parser_kind=health.parser_kind,
            active=health.active,
            is_healthy=health.parser.is_healthy,
            status=health.parser.status,
            consecutive_failures=health.parser.consecutive_failures,
            total_requests=health.parser.total_requests,
            successful_requests=health.parser.successful_requests,
            success_rate=health.parser.success_rate,
            last_successful=health.parser.last_successful,
            last_error=health.parser.last_error,
            breaker_state=health.breaker.state,
            breaker_failure_count=health.breaker.failure_count,
        )


class SourcesHealthResponse(BaseModel):
    total_sources: int = Field(..., ge=0)
    healthy_sources: int = Field(..., ge=0)
    breaker_states: dict[str, int] = Field(default_factory=dict)
    sources: list[SourceHealthResponse] = Field(default_factory=list)
