"""
tests/test_menu_collection_service.py

Batch collection, per-week caching, run summary and weekly menu reads.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date

import pytest

from app.domain.execution import ExecutionMetadata, ExecutionResult, ExtractionStatus
from app.domain.menu import Offering
from app.scraping.config.models import MenuScrapingSettings
from app.scraping.storage import InMemoryMenuCache, MenuCacheStore, RetryingMenuCache
from app.scraping.types import ExtractionOutcome
from app.services.menu_collection_service import (
    MenuCollectionService,
    build_menu_collection_service,
    group_by_week,
    summarize_run,
)
from tests.support import descriptor, make_orchestrator, outcome, record

TODAY = date(2025, 7, 14)


def _service(cache: MenuCacheStore | None = None):
    orchestrator = make_orchestrator()
    alpha = orchestrator.register(descriptor("alpha"))
    beta = orchestrator.register(descriptor("beta"))
    gamma = orchestrator.register(descriptor("gamma"))
    alpha.default = outcome(
        record("Köttbullar", source="Alpha"),
        record("Fiskgratäng", weekday="tisdag", source="Alpha"),
        record("Nästa veckas soppa", week=30, source="Alpha"),
    )
    beta.script = [ConnectionError("down")]
    gamma.default = ExtractionOutcome(status=ExtractionStatus.CLOSED)
    service = MenuCollectionService(
        orchestrator=orchestrator,
        cache=cache or InMemoryMenuCache(),
        max_concurrency=2,
        today=lambda: TODAY,
    )
    return service


def _result(success: bool, offerings: int) -> ExecutionResult:
    items = tuple(
        Offering(
            name=f"Rätt {index}",
            description="",
            price=100,
            weekday="måndag",
            week=29,
            source_name="Alpha",
        )
        for index in range(offerings)
    )
    return ExecutionResult(
        success=success,
        source="Alpha",
        url="https://alpha.example/lunch",
        offerings=items,
        metadata=ExecutionMetadata(
            total_extracted=offerings,
            valid_count=offerings,
            invalid_count=0,
            validation_errors=(),
            duration_ms=1.0,
            timestamp="2025-07-14T10:00:00Z",
            parser="ScriptedParser",
        ),
    )


class BrokenCache(MenuCacheStore):
    async def put(self, source_id, week, year, offerings, metadata=None):
        raise RuntimeError("disk full")

    async def get(self, source_id, week, year):
        return None

    async def delete(self, source_id, week, year):
        return False

    async def entries_for(self, source_id, *, limit=10):
        return []

    async def cleanup_expired(self):
        return 0

    async def stats(self):
        raise RuntimeError("disk full")



# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


class TestCollect:
    def test_collects_caches_and_summarizes(self) -> None:
        service = _service()

        report = asyncio.run(service.collect())

        assert report.source_ids == ["alpha", "beta", "gamma"]
        assert [result.success for result in report.results] == [True, False, True]

        summary = report.summary
        assert summary.parsing.total == 3
        assert summary.parsing.successful == 2
        assert summary.parsing.failed == 1
        assert summary.parsing.success_rate == 66.7
        assert summary.offerings.total == 3
        assert summary.offerings.cached == 3
        assert summary.offerings.average_per_source == 2
        assert summary.caching.successful == 1
        assert summary.caching.failed == 2
        assert summary.caching.errors == [{"source": "Beta", "error": "down"}]

    def test_offerings_are_cached_per_week(self) -> None:
        service = _service()
        asyncio.run(service.collect())

        this_week = asyncio.run(service.get_menu("alpha"))
        next_week = asyncio.run(service.get_menu("alpha", week=30, year=2025))

        assert [item.name for item in this_week] == ["Köttbullar", "Fiskgratäng"]
        assert [item.name for item in next_week] == ["Nästa veckas soppa"]
        assert asyncio.run(service.get_menu("beta")) is None
        assert asyncio.run(service.get_menu("gamma")) is None

    def test_selected_sources_only(self) -> None:
        service = _service()

        report = asyncio.run(service.collect(["gamma"]))

        assert report.source_ids == ["gamma"]
        assert report.summary.parsing.total == 1
        assert report.summary.caching.failed == 1
        assert report.summary.caching.errors == []

    def test_cache_write_failures_are_reported(self) -> None:
        service = _service(cache=BrokenCache())

        report = asyncio.run(service.collect(["alpha"]))

        assert report.results[0].success is True
        assert report.summary.offerings.cached == 0
        assert report.summary.caching.failed == 1
        assert report.summary.caching.errors == [{"source": "Alpha", "error": "disk full"}]


# ---------------------------------------------------------------------------
# Weekly menus across sources
# ---------------------------------------------------------------------------


def _offering(name: str, weekday: str, week: int, source: str) -> Offering:
    return Offering(
        name=name,
        description="",
        price=100,
        weekday=weekday,
        week=week,
        source_name=source,
    )


class FailingReadCache(InMemoryMenuCache):
    def __init__(self, failing_source: str) -> None:
        super().__init__()
        self.failing_source = failing_source

    async def get(self, source_id, week, year):
        if source_id == self.failing_source:
            raise RuntimeError("read timeout")
        return await super().get(source_id, week, year)


def _weekly_service(cache: InMemoryMenuCache) -> MenuCollectionService:
    orchestrator = make_orchestrator()
    for source_id in ("alpha", "beta", "gamma"):
        orchestrator.register(descriptor(source_id))
    orchestrator.register(descriptor("delta", active=False))
    asyncio.run(
        cache.put(
            "alpha",
            29,
            2025,
            [
                _offering("Köttbullar", "måndag", 29, "Alpha"),
                _offering("Fiskgratäng", "tisdag", 29, "Alpha"),
            ],
        )
    )
    asyncio.run(cache.put("beta", 28, 2025, [_offering("Pytt i panna", "tisdag", 28, "Beta")]))
    asyncio.run(cache.put("delta", 29, 2025, [_offering("Soppa", "måndag", 29, "Delta")]))
    return MenuCollectionService(orchestrator=orchestrator, cache=cache, today=lambda: TODAY)


class TestWeeklyMenus:
    def test_reads_active_sources_with_previous_week_fallback(self) -> None:
        service = _weekly_service(InMemoryMenuCache())

        weekly = asyncio.run(service.get_weekly_menus())

        assert (weekly.week, weekly.year, weekly.day) == (29, 2025, None)
        assert [(menu.source_id, menu.week, menu.is_fallback) for menu in weekly.menus] == [
            ("alpha", 29, False),
            ("beta", 28, True),
        ]
        assert weekly.menus[1].display_name == "Beta"
        assert weekly.missing == ["gamma"]
        assert weekly.fallbacks == 1
        assert [item.name for item in weekly.offerings] == [
            "Köttbullar",
            "Fiskgratäng",
            "Pytt i panna",
        ]

    def test_day_filter_accepts_english_names(self) -> None:
        service = _weekly_service(InMemoryMenuCache())

        weekly = asyncio.run(service.get_weekly_menus(day="Tuesday"))

        assert weekly.day == "tisdag"
        assert [item.name for item in weekly.offerings] == ["Fiskgratäng", "Pytt i panna"]
        assert asyncio.run(service.get_weekly_menus(day="all")).day is None

    def test_unknown_day_is_rejected(self) -> None:
        service = _weekly_service(InMemoryMenuCache())

        with pytest.raises(ValueError, match="Unknown weekday"):
            asyncio.run(service.get_weekly_menus(day="lördag"))

    def test_first_week_falls_back_to_previous_year(self) -> None:
        cache = InMemoryMenuCache()
        service = _weekly_service(cache)
        asyncio.run(cache.put("gamma", 52, 2024, [_offering("Julbord", "fredag", 52, "Gamma")]))

        weekly = asyncio.run(service.get_weekly_menus(week=1, year=2025))

        assert [(menu.source_id, menu.week, menu.year) for menu in weekly.menus] == [
            ("gamma", 52, 2024),
        ]
        assert weekly.missing == ["alpha", "beta"]

    def test_cache_read_failure_marks_source_missing(self) -> None:
        service = _weekly_service(FailingReadCache("alpha"))

        weekly = asyncio.run(service.get_weekly_menus())

        assert [menu.source_id for menu in weekly.menus] == ["beta"]
        assert weekly.missing == ["alpha", "gamma"]



# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestSummaries:
    def test_average_rounds_half_up(self) -> None:
        summary = summarize_run(
            [_result(True, 2), _result(True, 3)],
            cached_items=5,
            cache_successful=2,
            cache_failed=0,
            cache_errors=[],
        )

        assert summary.offerings.average_per_source == 3
        assert summary.parsing.success_rate == 100.0

    def test_empty_run(self) -> None:
        summary = summarize_run(
            [],
            cached_items=0,
            cache_successful=0,
            cache_failed=0,
            cache_errors=[],
        )

        assert summary.parsing.total == 0
        assert summary.parsing.success_rate == 0.0
        assert summary.offerings.average_per_source == 0

    def test_group_by_week(self) -> None:
        offerings = list(_result(True, 2).offerings)
        later = Offering(
            name="Senare",
            description="",
            price=90,
            weekday="fredag",
            week=30,
            source_name="Alpha",
        )

        groups = group_by_week(offerings + [later])

        assert sorted(groups) == [29, 30]
        assert groups[30] == [later]


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


class TestBuildService:
    def test_builds_from_settings(self, tmp_path) -> None:
        config_path = tmp_path / "sources.json"
        config_path.write_text(
            json.dumps(
                {
                    "sources": [
                        {
                            "id": "niagara",
                            "name": "Niagara",
                            "url": "https://restaurangniagara.se/lunch/",
                            "parser": "niagara",
                            "resilience": {"failure_threshold": 3, "cooldown_seconds": 300},
                        },
                        {
                            "id": "kantin",
                            "name": "Kantin",
                            "url": "https://kantin.example/lunch",
                            "active": False,
                        },
                    ]
                }
            ),
            encoding="utf-8",
        )
        settings = MenuScrapingSettings(
            sources_config_path=str(config_path),
            user_agent="test-agent",
            fetch_timeout_seconds=5.0,
            fetch_max_attempts=2,
            fetch_backoff_base_seconds=0.1,
            fetch_backoff_max_seconds=1.0,
            failure_threshold=5,
            cooldown_seconds=60.0,
            max_concurrency=4,
            cache_backend="memory",
            cache_ttl_days=14,
            cache_max_attempts=3,
            cache_backoff_base_seconds=0.1,
            cache_backoff_max_seconds=5.0,
            retry_jitter_ratio=0.1,
        )

        service = build_menu_collection_service(settings)

        assert service.max_concurrency == 4
        assert service.orchestrator.source_ids() == ["niagara", "kantin"]
        assert service.orchestrator.source_ids(active_only=True) == ["niagara"]
        assert service.orchestrator.breaker_snapshot("niagara").failure_threshold == 3
        assert service.orchestrator.breaker_snapshot("kantin").failure_threshold == 5
        assert isinstance(service.cache, RetryingMenuCache)
        assert isinstance(service.cache.inner, InMemoryMenuCache)
        assert service.cache.policy.max_attempts == 3
        service.close()
