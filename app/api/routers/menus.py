"""
app/api/routers/menus.py

Menu collection, cached menu lookups and source health endpoints.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_menu_service
from app.scraping.normalization.fields import current_iso_week
from app.schemas.menus import (
    BatchRunSummaryResponse,
    CollectionReportResponse,
    ExecutionResultResponse,
    MenuResponse,
    OfferingResponse,
    SourceHealthResponse,
    SourcesHealthResponse,
    WeeklyMenusResponse,
)
from app.services.menu_collection_service import MenuCollectionService

router = APIRouter(tags=["menus"])


@router.post("/menus/collect", response_model=CollectionReportResponse)
async def collect_menus(
    source: list[str] | None = Query(default=None, description="Optional source id filter"),
    service: MenuCollectionService = Depends(get_menu_service),
) -> CollectionReportResponse:
    """
    Run every active source (or the selected ones) and cache the offerings.
    """

    if source:
        known = set(service.orchestrator.source_ids())
        unknown = sorted(set(source) - known)
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown source(s): {', '.join(unknown)}",
            )

    report = await service.collect(source)
    return CollectionReportResponse(
        results=[ExecutionResultResponse.from_result(result) for result in report.results],
        summary=BatchRunSummaryResponse.from_summary(report.summary),
    )


@router.get("/menus", response_model=WeeklyMenusResponse)
async def get_weekly_menus(
    week: int | None = Query(default=None, ge=1, le=53),
    year: int | None = Query(default=None, ge=2000, le=9999),
    day: str | None = Query(default=None, description="Weekday in Swedish or English, or 'all'"),
    service: MenuCollectionService = Depends(get_menu_service),
) -> WeeklyMenusResponse:
    """
    Cached menus of every active source, falling back to the previous week
    per source when the requested week is empty.
    """

    try:
        weekly = await service.get_weekly_menus(week=week, year=year, day=day)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    return WeeklyMenusResponse.from_weekly_menus(weekly)


@router.get("/menus/{source_id}", response_model=MenuResponse)

async def get_menu(
    source_id: str,
    week: int | None = Query(default=None, ge=1, le=53),
    year: int | None = Query(default=None, ge=2000, le=9999),
    service: MenuCollectionService = Depends(get_menu_service),
) -> MenuResponse:
    if source_id not in service.orchestrator.source_ids():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown source: {source_id}",
        )

    today = date.today()
    resolved_week = week if week is not None else current_iso_week(today)
    resolved_year = year if year is not None else today.year
    offerings = await service.get_menu(source_id, week=resolved_week, year=resolved_year)
    if offerings is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No cached menu for {source_id} week {resolved_week} {resolved_year}",
        )

    return MenuResponse(
        source_id=source_id,
        week=resolved_week,
        year=resolved_year,
        offerings=[OfferingResponse.from_offering(item) for item in offerings],
    )


@router.get("/sources/health", response_model=SourcesHealthResponse)
def sources_health(
    service: MenuCollectionService = Depends(get_menu_service),
) -> SourcesHealthResponse:
    report = service.orchestrator.health_report()
    stats = service.orchestrator.stats()
    return SourcesHealthResponse(
        total_sources=stats.total_sources,
        healthy_sources=stats.healthy_sources,
        breaker_states=stats.breaker_states,
        sources=[SourceHealthResponse.from_health(item) for item in report],
    )
