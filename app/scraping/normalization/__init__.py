"""
Field normalization and closure detection.
"""

from app.scraping.normalization.closure import detect_closure
from app.scraping.normalization.fields import (
    current_iso_week,
    normalize_weekday,
    parse_price,
    previous_iso_week,
    resolve_day_filter,
    resolve_week,
    week_from_text,
)

__all__ = [
    "current_iso_week",
    "detect_closure",
    "normalize_weekday",
    "parse_price",
    "previous_iso_week",
    "resolve_day_filter",
    "resolve_week",
    "week_from_text",
]
