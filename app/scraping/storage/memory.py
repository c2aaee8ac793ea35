"""
In-process menu cache.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any, Callable

from app.domain.menu import Offering
from app.scraping.storage.base import CacheEntry, CacheStats, MenuCacheStore, make_cache_key
from db.base import utc_now


class InMemoryMenuCache(MenuCacheStore):
    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(days=14),
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ttl = ttl
        self._now = now
        self._entries: dict[str, CacheEntry] = {}

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
        self._entries[entry.key] = entry
        return entry

    async def get(self, source_id: str, week: int, year: int) -> list[Offering] | None:
        key = make_cache_key(source_id, week, year)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._now()):
            del self._entries[key]
            return None
        return list(entry.offerings)

    async def delete(self, source_id: str, week: int, year: int) -> bool:
        return self._entries.pop(make_cache_key(source_id, week, year), None) is not None

    async def entries_for(self, source_id: str, *, limit: int = 10) -> list[CacheEntry]:
        now = self._now()
        matching = [
            entry
            for entry in self._entries.values()
            if entry.source_id == source_id and not entry.is_expired(now)
        ]
        matching.sort(key=lambda entry: (entry.year, entry.week), reverse=True)
        return matching[:limit]

    async def cleanup_expired(self) -> int:
        now = self._now()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def stats(self) -> CacheStats:
        now = self._now()
        return CacheStats(
            total_entries=len(self._entries),
            expired_entries=sum(1 for entry in self._entries.values() if entry.is_expired(now)),
            scanned_at=now,
        )


    def __len__(self) -> int:
        return len(self._entries)
