"""
Storage layer interfaces for cached weekly menus.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.domain.menu import Offering


def make_cache_key(source_id: str, week: int, year: int) -> str:
    """
    Cache key for one source week, e.g. `niagara-2025-07`.
    """

    return f"{source_id.strip().lower()}-{int(year)}-{int(week):02d}"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    source_id: str
    week: int
    year: int
    offerings: list[Offering]
    cached_at: datetime
    expires_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    expired_entries: int
    scanned_at: datetime

    @property
    def live_entries(self) -> int:
        return self.total_entries - self.expired_entries


class MenuCacheStore(ABC):
    """
    Key/value store for validated offerings with a retention window.
    """

    @abstractmethod
    async def put(
        self,
        source_id: str,
        week: int,
        year: int,
        offerings: Sequence[Offering],
        metadata: Mapping[str, Any] | None = None,
    ) -> CacheEntry:
        """
        Store offerings for one source week, replacing any earlier entry.
        """

    @abstractmethod
    async def get(self, source_id: str, week: int, year: int) -> list[Offering] | None:
        """
        Return cached offerings, or None when missing or expired.
        """

    @abstractmethod
    async def delete(self, source_id: str, week: int, year: int) -> bool:
        """
        Remove one source week; True when an entry was removed.
        """

    @abstractmethod
    async def entries_for(self, source_id: str, *, limit: int = 10) -> list[CacheEntry]:
        """
        Unexpired entries for one source, most recent week first.
        """

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """
        Drop every expired entry and return how many were removed.
        """

    @abstractmethod
    async def stats(self) -> CacheStats:
        """
        Entry counts at the time of the call.
        """
