"""
Storage layer exports.
"""

from app.scraping.storage.base import CacheEntry, CacheStats, MenuCacheStore, make_cache_key
from app.scraping.storage.memory import InMemoryMenuCache
from app.scraping.storage.retrying import RetryingMenuCache
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyMenuCache

__all__ = [
    "CacheEntry",
    "CacheStats",
    "InMemoryMenuCache",
    "MenuCacheStore",
    "RetryingMenuCache",
    "SQLAlchemyMenuCache",
    "make_cache_key",
]
