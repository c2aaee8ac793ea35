"""
Model package exports.

Import all SQLAlchemy models here so metadata registration works without
extra imports.
"""

from db.models.menu_cache_entry import MenuCacheEntry

__all__ = ["MenuCacheEntry"]
