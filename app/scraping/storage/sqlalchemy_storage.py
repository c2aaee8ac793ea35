"""
SQLAlchemy-backed menu cache.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.menu import Offering
from app.scraping.storage.base import CacheEntry, CacheStats, MenuCacheStore, make_cache_key
from db.base import as_utc, utc_now
from db.models.menu_cache_entry import MenuCacheEntry


class SQLAlchemyMenuCache(MenuCacheStore):
    """
    Persist cached menus through short-lived sessions.

    Session work is blocking, so each call runs in a worker thread.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        ttl: timedelta = timedelta(days=14),
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._ttl = ttl
        self._now = now

    async def put(
        self,
        source_id: str,
        week: int,
        year: int,
        offerings: Sequence[Offering],
        metadata: Mapping[str, Any] | None = None,
    ) -> CacheEntry:
        cached_at = self._now()
        entry = CacheEntry(
            key=make_cache_key(source_id, week, year),
            source_id=source_id,
            week=week,
            year=year,
            offerings=list(offerings),
            cached_at=cached_at,
            expires_at=cached_at + self._ttl,
            metadata=dict(metadata or {}),
        )
        await asyncio.to_thread(self._write, entry)
        return entry

    async def get(self, source_id: str, week: int, year: int) -> list[Offering] | None:
        key = make_cache_key(source_id, week, year)
        return await asyncio.to_thread(self._read, key)

    async def delete(self, source_id: str, week: int, year: int) -> bool:
        key = make_cache_key(source_id, week, year)
        return await asyncio.to_thread(self._delete, key) > 0

    async def entries_for(self, source_id: str, *, limit: int = 10) -> list[CacheEntry]:
        return await asyncio.to_thread(self._read_source, source_id, limit)

    async def cleanup_expired(self) -> int:
        return await asyncio.to_thread(self._delete_expired)

    async def stats(self) -> CacheStats:
        return await asyncio.to_thread(self._count)


    def _write(self, entry: CacheEntry) -> None:
        session = self._session_factory()
        try:
            row = session.get(MenuCacheEntry, entry.key)
            if row is None:
                row = MenuCacheEntry(cache_key=entry.key)
                session.add(row)
            row.source_id = entry.source_id
            row.week = entry.week
            row.year = entry.year
            row.offerings = [offering.to_dict() for offering in entry.offerings]
            row.metadata_json = entry.metadata or None
            row.cached_at = entry.cached_at
            row.expires_at = entry.expires_at
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def _read(self, key: str) -> list[Offering] | None:
        session = self._session_factory()
        try:
            row = session.get(MenuCacheEntry, key)
            if row is None:
                return None
            if self._now() >= as_utc(row.expires_at):
                return None
            return [Offering.from_dict(item) for item in row.offerings]
        finally:
            session.close()

    def _read_source(self, source_id: str, limit: int) -> list[CacheEntry]:
        session = self._session_factory()
        try:
            rows = session.scalars(
                select(MenuCacheEntry)
                .where(
                    MenuCacheEntry.source_id == source_id,
                    MenuCacheEntry.expires_at > self._now(),
                )
                .order_by(MenuCacheEntry.year.desc(), MenuCacheEntry.week.desc())
                .limit(limit)
            ).all()
            return [_to_entry(row) for row in rows]
        finally:
            session.close()

    def _delete(self, key: str) -> int:
        return self._execute_delete(delete(MenuCacheEntry).where(MenuCacheEntry.cache_key == key))

    def _delete_expired(self) -> int:
        return self._execute_delete(
            delete(MenuCacheEntry).where(MenuCacheEntry.expires_at <= self._now())
        )

    def _execute_delete(self, statement) -> int:
        session = self._session_factory()
        try:
            removed = session.execute(statement).rowcount or 0
            session.commit()
            return removed
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def _count(self) -> CacheStats:
        now = self._now()
        session = self._session_factory()
        try:
            total = session.scalar(select(func.count()).select_from(MenuCacheEntry)) or 0
            expired = (
                session.scalar(
                    select(func.count())
                    .select_from(MenuCacheEntry)
                    .where(MenuCacheEntry.expires_at <= now)
                )
                or 0
            )
            return CacheStats(total_entries=total, expired_entries=expired, scanned_at=now)
        finally:
            session.close()


def _to_entry(row: MenuCacheEntry) -> CacheEntry:
    return CacheEntry(
        key=row.cache_key,
        source_id=row.source_id,
        week=row.week,
        year=row.year,
        offerings=[Offering.from_dict(item) for item in row.offerings],
        cached_at=as_utc(row.cached_at),
        expires_at=as_utc(row.expires_at),
        metadata=dict(row.metadata_json or {}),
    )
