"""
db/models/menu_cache_entry.py

Cached weekly menu for one source, keyed by source, year and week.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class MenuCacheEntry(TimestampMixin, Base):
    __tablename__ = "menu_cache_entries"

    cache_key: Mapped[str] = mapped_column(
        String(160),
        primary_key=True,
        comment="lowercase(source_id)-year-zero padded week",
    )
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    offerings: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        comment="Serialized validated offerings",
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="Execution metadata captured at write time",
    )
    cached_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_menu_cache_entries_source_id", "source_id"),
        Index("ix_menu_cache_entries_expires_at", "expires_at"),
    )
