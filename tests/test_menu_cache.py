"""
tests/test_menu_cache.py

In-memory and SQLAlchemy menu caches, TTL expiry and retrying wrapper.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from app.domain.menu import Offering
from app.scraping.errors import RetryExhaustedError
from app.scraping.retry import RetryPolicy
from app.scraping.storage import (
    InMemoryMenuCache,
    MenuCacheStore,
    RetryingMenuCache,
    SQLAlchemyMenuCache,
    make_cache_key,
)
from db.models import MenuCacheEntry
from db.session import create_session_factory, init_db

OFFERINGS = [
    Offering(
        name="Köttbullar",
        description="Med potatismos",
        price=125,
        weekday="måndag",
        week=29,
        source_name="Niagara",
    ),
    Offering(
        name="Fiskgratäng",
        description="",
        price=119,
        weekday="tisdag",
        week=29,
        source_name="Niagara",
    ),
]


class MutableClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 7, 14, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sqlalchemy"])
def store(request, clock, session_factory) -> MenuCacheStore:
    ttl = timedelta(days=14)
    if request.param == "memory":
        return InMemoryMenuCache(ttl=ttl, now=clock)
    return SQLAlchemyMenuCache(session_factory=session_factory, ttl=ttl, now=clock)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class TestCacheKey:
    def test_format(self) -> None:
        assert make_cache_key("Niagara", 7, 2025) == "niagara-2025-07"
        assert make_cache_key(" niagara ", 29, 2025) == "niagara-2025-29"


# ---------------------------------------------------------------------------
# Store behaviour shared by both backends
# ---------------------------------------------------------------------------


class TestMenuCacheStore:
    def test_put_then_get(self, store: MenuCacheStore) -> None:
        entry = asyncio.run(store.put("niagara", 29, 2025, OFFERINGS, {"parser": "NiagaraParser"}))

        assert entry.key == "niagara-2025-29"
        assert entry.expires_at - entry.cached_at == timedelta(days=14)
        assert asyncio.run(store.get("niagara", 29, 2025)) == OFFERINGS

    def test_miss(self, store: MenuCacheStore) -> None:
        assert asyncio.run(store.get("niagara", 30, 2025)) is None

    def test_put_replaces_existing_entry(self, store: MenuCacheStore) -> None:
        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS))
        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS[:1]))

        assert asyncio.run(store.get("niagara", 29, 2025)) == OFFERINGS[:1]

    def test_key_is_case_insensitive(self, store: MenuCacheStore) -> None:
        asyncio.run(store.put("Niagara", 29, 2025, OFFERINGS))

        assert asyncio.run(store.get("niagara", 29, 2025)) == OFFERINGS

    def test_expired_entries_are_not_returned(self, store: MenuCacheStore, clock: MutableClock) -> None:
        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS))

        clock.now += timedelta(days=13, hours=23)
        assert asyncio.run(store.get("niagara", 29, 2025)) == OFFERINGS

        clock.now += timedelta(hours=1)
        assert asyncio.run(store.get("niagara", 29, 2025)) is None

    def test_delete(self, store: MenuCacheStore) -> None:
        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS))

        assert asyncio.run(store.delete("Niagara", 29, 2025)) is True
        assert asyncio.run(store.get("niagara", 29, 2025)) is None
        assert asyncio.run(store.delete("niagara", 29, 2025)) is False

    def test_entries_for_source_newest_first(self, store: MenuCacheStore, clock: MutableClock) -> None:
        asyncio.run(store.put("niagara", 52, 2024, OFFERINGS[:1]))
        asyncio.run(store.put("niagara", 28, 2025, OFFERINGS))
        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS, {"strategy": "table"}))
        asyncio.run(store.put("kantin", 29, 2025, OFFERINGS))

        entries = asyncio.run(store.entries_for("niagara", limit=2))

        assert [(entry.year, entry.week) for entry in entries] == [(2025, 29), (2025, 28)]
        assert entries[0].key == "niagara-2025-29"
        assert entries[0].offerings == OFFERINGS
        assert entries[0].metadata == {"strategy": "table"}
        assert entries[0].expires_at == clock.now + timedelta(days=14)

    def test_entries_for_skips_expired(self, store: MenuCacheStore, clock: MutableClock) -> None:
        asyncio.run(store.put("niagara", 28, 2025, OFFERINGS))
        clock.now += timedelta(days=7)
        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS))
        clock.now += timedelta(days=7)

        entries = asyncio.run(store.entries_for("niagara"))

        assert [entry.week for entry in entries] == [29]

    def test_cleanup_expired_and_stats(self, store: MenuCacheStore, clock: MutableClock) -> None:
        asyncio.run(store.put("niagara", 28, 2025, OFFERINGS))
        asyncio.run(store.put("kantin", 28, 2025, OFFERINGS))
        clock.now += timedelta(days=7)
        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS))
        clock.now += timedelta(days=7)

        before = asyncio.run(store.stats())
        assert (before.total_entries, before.expired_entries, before.live_entries) == (3, 2, 1)
        assert before.scanned_at == clock.now

        assert asyncio.run(store.cleanup_expired()) == 2

        after = asyncio.run(store.stats())
        assert (after.total_entries, after.expired_entries) == (1, 0)
        assert asyncio.run(store.get("niagara", 29, 2025)) == OFFERINGS
        assert asyncio.run(store.cleanup_expired()) == 0



class TestSQLAlchemyMenuCache:
    def test_row_contents(self, session_factory, clock: MutableClock) -> None:
        store = SQLAlchemyMenuCache(session_factory=session_factory, now=clock)

        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS, {"strategy": "table"}))

        with session_factory() as session:
            row = session.get(MenuCacheEntry, "niagara-2025-29")
            assert row.source_id == "niagara"
            assert row.week == 29
            assert row.year == 2025
            assert row.offerings[0]["name"] == "Köttbullar"
            assert row.metadata_json == {"strategy": "table"}


# ---------------------------------------------------------------------------
# Retrying wrapper
# ---------------------------------------------------------------------------


class FlakyStore(MenuCacheStore):
    def __init__(self, inner: MenuCacheStore, failures: int) -> None:
        self.inner = inner
        self.failures = failures
        self.put_calls = 0
        self.cleanup_calls = 0

    async def put(self, source_id, week, year, offerings, metadata=None):
        self.put_calls += 1
        if self.put_calls <= self.failures:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return await self.inner.put(source_id, week, year, offerings, metadata)

    async def get(self, source_id, week, year):
        return await self.inner.get(source_id, week, year)

    async def delete(self, source_id, week, year):
        return await self.inner.delete(source_id, week, year)

    async def entries_for(self, source_id, *, limit=10):
        return await self.inner.entries_for(source_id, limit=limit)

    async def cleanup_expired(self):
        self.cleanup_calls += 1
        if self.cleanup_calls <= self.failures:
            raise OperationalError("DELETE", {}, Exception("database is locked"))
        return await self.inner.cleanup_expired()

    async def stats(self):
        return await self.inner.stats()



async def _no_sleep(delay: float) -> None:
    return None


class TestRetryingMenuCache:
    def test_retries_transient_write_errors(self, clock: MutableClock) -> None:
        inner = InMemoryMenuCache(now=clock)
        flaky = FlakyStore(inner, failures=2)
        store = RetryingMenuCache(flaky, policy=RetryPolicy(max_attempts=3), sleep=_no_sleep)

        asyncio.run(store.put("niagara", 29, 2025, OFFERINGS))

        assert flaky.put_calls == 3
        assert asyncio.run(store.get("niagara", 29, 2025)) == OFFERINGS

    def test_gives_up_after_max_attempts(self, clock: MutableClock) -> None:
        flaky = FlakyStore(InMemoryMenuCache(now=clock), failures=5)
        store = RetryingMenuCache(flaky, policy=RetryPolicy(max_attempts=3), sleep=_no_sleep)

        with pytest.raises(RetryExhaustedError) as exc_info:
            asyncio.run(store.put("niagara", 29, 2025, OFFERINGS))

        assert flaky.put_calls == 3
        assert exc_info.value.operation_name == "cache put niagara-2025-29"

    def test_retries_cleanup(self, clock: MutableClock) -> None:
        inner = InMemoryMenuCache(now=clock)
        asyncio.run(inner.put("niagara", 29, 2025, OFFERINGS))
        clock.now += timedelta(days=15)
        flaky = FlakyStore(inner, failures=1)
        store = RetryingMenuCache(flaky, policy=RetryPolicy(max_attempts=2), sleep=_no_sleep)

        assert asyncio.run(store.cleanup_expired()) == 1
        assert flaky.cleanup_calls == 2
        assert len(inner) == 0
