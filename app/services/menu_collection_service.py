"""
app/services/menu_collection_service.py

Batch menu collection: run every source, cache offerings per week,
summarize the run and serve cached weekly menus.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from functools import lru_cache
from typing import Callable

from app.domain.execution import (
    BatchRunSummary,
    CachingSummary,
    ExecutionResult,
    OfferingSummary,
    ParsingSummary,
)
from app.domain.menu import Offering
from app.scraping.config import get_menu_scraping_settings, load_source_descriptors
from app.scraping.config.models import MenuScrapingSettings
from app.scraping.fetcher import RequestsDocumentFetcher
from app.scraping.logging_utils import log_event
from app.scraping.normalization.fields import (
    current_iso_week,
    previous_iso_week,
    resolve_day_filter,
)
from app.scraping.orchestrator import ResilienceOrchestrator
from app.scraping.retry import RetryPolicy
from app.scraping.storage import (
    InMemoryMenuCache,
    MenuCacheStore,
    RetryingMenuCache,
    SQLAlchemyMenuCache,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionReport:
    results: list[ExecutionResult]
    summary: BatchRunSummary
    source_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SourceMenu:
    source_id: str
    display_name: str
    week: int
    year: int
    offerings: list[Offering]
    is_fallback: bool = False


@dataclass(frozen=True)
class WeeklyMenus:
    """
    Cached menus of every active source for one week, optionally one day.
    """

    week: int
    year: int
    day: str | None
    menus: list[SourceMenu] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def fallbacks(self) -> int:
        return sum(1 for menu in self.menus if menu.is_fallback)

    @property
    def offerings(self) -> list[Offering]:
        return [offering for menu in self.menus for offering in menu.offerings]


@dataclass
class _CacheTally:

    successful: int = 0
    failed: int = 0
    cached_items: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


def group_by_week(offerings: Sequence[Offering]) -> dict[int, list[Offering]]:
    groups: dict[int, list[Offering]] = {}
    for offering in offerings:
        groups.setdefault(offering.week, []).append(offering)
    return groups


def summarize_run(
    results: Sequence[ExecutionResult],
    *,
    cached_items: int,
    cache_successful: int,
    cache_failed: int,
    cache_errors: list[dict[str, str]],
) -> BatchRunSummary:
    total = len(results)
    successful = sum(1 for result in results if result.success)
    total_offerings = sum(len(result.offerings) for result in results)
    return BatchRunSummary(
        parsing=ParsingSummary(
            total=total,
            successful=successful,
            failed=total - successful,
            success_rate=round(successful / total * 100.0, 1) if total else 0.0,
        ),
        offerings=OfferingSummary(
            total=total_offerings,
            cached=cached_items,
            average_per_source=int(total_offerings / successful + 0.5) if successful else 0,
        ),
        caching=CachingSummary(
            successful=cache_successful,
            failed=cache_failed,
            errors=list(cache_errors),
        ),
    )


class MenuCollectionService:
    """
    Runs the orchestrator over all active sources and caches the results.
    """

    def __init__(
        self,
        *,
        orchestrator: ResilienceOrchestrator,
        cache: MenuCacheStore,
        max_concurrency: int = 3,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.orchestrator = orchestrator
        self.cache = cache
        self.max_concurrency = max_concurrency
        self._today = today

    async def collect(self, source_ids: Sequence[str] | None = None) -> CollectionReport:
        selected = (
            list(source_ids)
            if source_ids is not None
            else self.orchestrator.source_ids(active_only=True)
        )
        results = await self.orchestrator.execute_all(
            selected,
            max_concurrency=self.max_concurrency,
            continue_on_error=True,
        )
        tally = await self._cache_results(selected, results)
        summary = summarize_run(
            results,
            cached_items=tally.cached_items,
            cache_successful=tally.successful,
            cache_failed=tally.failed,
            cache_errors=tally.errors,
        )
        log_event(
            logger,
            logging.INFO,
            "menu_collection_completed",
            sources=summary.parsing.total,
            successful=summary.parsing.successful,
            failed=summary.parsing.failed,
            offerings=summary.offerings.total,
            cached=summary.offerings.cached,
            cache_failures=summary.caching.failed,
        )
        return CollectionReport(results=results, summary=summary, source_ids=selected)

    async def _cache_results(
        self,
        source_ids: Sequence[str],
        results: Sequence[ExecutionResult],
    ) -> _CacheTally:
        tally = _CacheTally()
        year = self._today().year

        for source_id, result in zip(source_ids, results):
            if not result.success or not result.offerings:
                tally.failed += 1
                if result.error is not None:
                    tally.errors.append({"source": result.source, "error": result.error.message})
                continue

            try:
                for week, offerings in group_by_week(result.offerings).items():
                    await self.cache.put(
                        source_id,
                        week,
                        year,
                        offerings,
                        result.metadata.to_dict(),
                    )
                    tally.cached_items += len(offerings)
            except Exception as exc:
                tally.failed += 1
                tally.errors.append({"source": result.source, "error": str(exc)})
                log_event(
                    logger,
                    logging.ERROR,
                    "menu_cache_write_failed",
                    source_id=source_id,
                    error=str(exc),
                )
                continue

            tally.successful += 1
        return tally

    async def get_menu(
        self,
        source_id: str,
        *,
        week: int | None = None,
        year: int | None = None,
    ) -> list[Offering] | None:
        today = self._today()
        return await self.cache.get(
            source_id,
            week if week is not None else current_iso_week(today),
            year if year is not None else today.year,
        )

    async def get_weekly_menus(
        self,
        *,
        week: int | None = None,
        year: int | None = None,
        day: str | None = None,
    ) -> WeeklyMenus:
        """
        Read the cached menu of every active source.

        A source with nothing cached for the week falls back to the
        previous ISO week. `day` accepts Swedish or English weekday names
        and raises ValueError for anything else.
        """

        weekday = resolve_day_filter(day)
        today = self._today()
        week = week if week is not None else current_iso_week(today)
        year = year if year is not None else today.year

        source_ids = self.orchestrator.source_ids(active_only=True)
        lookups = await asyncio.gather(
            *(self._read_source_menu(source_id, week, year) for source_id in source_ids),
            return_exceptions=True,
        )

        menus: list[SourceMenu] = []
        missing: list[str] = []
        for source_id, lookup in zip(source_ids, lookups):
            if isinstance(lookup, Exception):
                log_event(
                    logger,
                    logging.ERROR,
                    "menu_cache_read_failed",
                    source_id=source_id,
                    week=week,
                    year=year,
                    error=str(lookup),
                )
                missing.append(source_id)
            elif isinstance(lookup, BaseException):
                raise lookup
            elif lookup is None:
                missing.append(source_id)
            else:
                menus.append(lookup)

        if weekday is not None:
            menus = [
                replace(menu, offerings=[item for item in menu.offerings if item.weekday == weekday])
                for menu in menus
            ]

        result = WeeklyMenus(week=week, year=year, day=weekday, menus=menus, missing=missing)
        log_event(
            logger,
            logging.INFO,
            "weekly_menus_read",
            week=week,
            year=year,
            day=weekday,
            sources=len(source_ids),
            found=len(menus),
            fallbacks=result.fallbacks,
            offerings=len(result.offerings),
        )
        return result

    async def _read_source_menu(self, source_id: str, week: int, year: int) -> SourceMenu | None:
        display_name = self.orchestrator.descriptor(source_id).display_name
        offerings = await self.cache.get(source_id, week, year)
        if offerings:
            return SourceMenu(source_id, display_name, week, year, offerings)

        previous_week, previous_year = previous_iso_week(week, year)
        offerings = await self.cache.get(source_id, previous_week, previous_year)
        if offerings:
            return SourceMenu(
                source_id,
                display_name,
                previous_week,
                previous_year,
                offerings,
                is_fallback=True,
            )
        return None

    def close(self) -> None:
        self.orchestrator.close()


def build_cache(settings: MenuScrapingSettings) -> MenuCacheStore:
    ttl = timedelta(days=settings.cache_ttl_days)
    if settings.cache_backend == "sqlalchemy":
        from db.session import SessionLocal

        store: MenuCacheStore = SQLAlchemyMenuCache(session_factory=SessionLocal, ttl=ttl)
    else:
        store = InMemoryMenuCache(ttl=ttl)
    return RetryingMenuCache(
        store,
        policy=RetryPolicy(
            max_attempts=settings.cache_max_attempts,
            base_delay_seconds=settings.cache_backoff_base_seconds,
            max_delay_seconds=settings.cache_backoff_max_seconds,
            jitter_ratio=settings.retry_jitter_ratio,
        ),
    )


def build_menu_collection_service(settings: MenuScrapingSettings) -> MenuCollectionService:
    fetcher = RequestsDocumentFetcher(
        timeout_seconds=settings.fetch_timeout_seconds,
        user_agent=settings.user_agent,
        retry_policy=RetryPolicy(
            max_attempts=settings.fetch_max_attempts,
            base_delay_seconds=settings.fetch_backoff_base_seconds,
            max_delay_seconds=settings.fetch_backoff_max_seconds,
            jitter_ratio=settings.retry_jitter_ratio,
        ),
    )
    orchestrator = ResilienceOrchestrator(
        fetch_node=fetcher,
        failure_threshold=settings.failure_threshold,
        cooldown_seconds=settings.cooldown_seconds,
    )
    for descriptor in load_source_descriptors(config_path=settings.sources_config_path):
        orchestrator.register(descriptor)

    return MenuCollectionService(
        orchestrator=orchestrator,
        cache=build_cache(settings),
        max_concurrency=settings.max_concurrency,
    )


@lru_cache(maxsize=1)
def get_menu_collection_service() -> MenuCollectionService:
    """
    Build and cache the menu collection service.
    """

    return build_menu_collection_service(get_menu_scraping_settings())
