"""
Retry decorator for any menu cache store.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from app.domain.menu import Offering
from app.scraping.retry import RetryPolicy, retry_async
from app.scraping.storage.base import CacheEntry, CacheStats, MenuCacheStore, make_cache_key


class RetryingMenuCache(MenuCacheStore):
    """
    Wrap a store so transient store failures are retried with backoff.

    Extra keyword arguments (`sleep`, `rand`, `is_retryable`) are passed
    through to `retry_async`.
    """

    def __init__(
        self,
        inner: MenuCacheStore,
        *,
        policy: RetryPolicy | None = None,
        **retry_options: Any,
    ) -> None:
        self.inner = inner
        self.policy = policy or RetryPolicy()
        self._retry_options = retry_options

    async def put(
        self,
        source_id: str,
        week: int,
        year: int,
        offerings: Sequence[Offering],
        metadata: Mapping[str, Any] | None = None,
    ) -> CacheEntry:
        return await retry_async(
            lambda: self.inner.put(source_id, week, year, offerings, metadata),
            policy=self.policy,
            operation_name=f"cache put {make_cache_key(source_id, week, year)}",
            **self._retry_options,
        )

    async def get(self, source_id: str, week: int, year: int) -> list[Offering] | None:
        return await retry_async(
            lambda: self.inner.get(source_id, week, year),
            policy=self.policy,
            operation_name=f"cache get {make_cache_key(source_id, week, year)}",
            **self._retry_options,
        )

    async def delete(self, source_id: str, week: int, year: int) -> bool:
        return await retry_async(
            lambda: self.inner.delete(source_id, week, year),
            policy=self.policy,
            operation_name=f"cache delete {make_cache_key(source_id, week, year)}",
            **self._retry_options,
        )

    async def entries_for(self, source_id: str, *, limit: int = 10) -> list[CacheEntry]:
        return await retry_async(
            lambda: self.inner.entries_for(source_id, limit=limit),
            policy=self.policy,
            operation_name=f"cache entries {source_id}",
            **self._retry_options,
        )

    async def cleanup_expired(self) -> int:
        return await retry_async(
            self.inner.cleanup_expired,
            policy=self.policy,
            operation_name="cache cleanup",
            **self._retry_options,
        )

    async def stats(self) -> CacheStats:
        return await retry_async(
            self.inner.stats,
            policy=self.policy,
            operation_name="cache stats",
            **self._retry_options,
        )
