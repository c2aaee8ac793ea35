"""
Field normalizers shared by extraction strategies and the record validator.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from app.domain.menu import ENGLISH_WEEKDAYS, WEEKDAY_ABBREVIATIONS, WEEKDAYS

PRICE_REGEX = re.compile(
    r"(?<![\d.,])(\d+)(?:[.,]\d+)?\s*(:-|kronor\b|kr\b)?",
    flags=re.IGNORECASE,
)
MINUS_SIGNS = frozenset({"-", "−"})

WEEK_TEXT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"vecka\s*(\d{4})[-/.](\d{2})[-/.](\d{2})", flags=re.IGNORECASE),
    re.compile(r"vecka\s*(\d{8})\b", flags=re.IGNORECASE),
    re.compile(r"vecka\s*(\d{1,2})\b", flags=re.IGNORECASE),
)


def clean_text(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", " ", value).strip()


def parse_price(
    text: str | None,
    *,
    allow_zero: bool = False,
    require_currency: bool = False,
) -> int | None:
    """
    Extract the first acceptable integer price from free text.

    Accepts "95 kr", "95kr", "95:-", "95 kronor" and bare "95". Digits
    directly preceded by a minus sign are never a price. With
    `require_currency` only currency-anchored numbers count.
    """

    if not text:
        return None

    for match in PRICE_REGEX.finditer(text):
        start = match.start(1)
        if start > 0 and text[start - 1] in MINUS_SIGNS:
            continue
        if require_currency and not match.group(2):
            continue
        value = int(match.group(1))
        if value == 0 and not allow_zero:
            continue
        return value
    return None


def normalize_weekday(value: Any) -> str | None:
    """
    Canonical Swedish weekday for a name or abbreviation, else None.
    """

    if not isinstance(value, str):
        return None
    token = value.strip().lower().rstrip(".:")
    if token in WEEKDAYS:
        return token
    return WEEKDAY_ABBREVIATIONS.get(token)


def current_iso_week(today: date | None = None) -> int:
    return (today or date.today()).isocalendar()[1]


def previous_iso_week(week: int, year: int) -> tuple[int, int]:
    """ISO week before `week`, crossing into the last week of the previous year."""
    if week > 1:
        return week - 1, year
    return date(year - 1, 12, 28).isocalendar()[1], year - 1


def resolve_day_filter(value: str | None) -> str | None:
    """
    Swedish weekday for a day filter given in Swedish or English.

    None, blank and "all" mean no filter. Raises ValueError for anything
    that is not a weekday.
    """

    if value is None or not value.strip() or value.strip().lower() == "all":
        return None
    weekday = normalize_weekday(value) or ENGLISH_WEEKDAYS.get(value.strip().lower())
    if weekday is None:
        raise ValueError(f"Unknown weekday: {value}")
    return weekday



def _iso_week_of(year: int, month: int, day: int) -> int | None:
    try:
        return date(year, month, day).isocalendar()[1]
    except ValueError:
        return None


def _week_from_token(token: str) -> int | None:
    token = token.strip()
    if re.fullmatch(r"\d{1,2}", token):
        week = int(token)
        return week if 1 <= week <= 53 else None
    if re.fullmatch(r"\d{8}", token):
        try:
            parsed = datetime.strptime(token, "%Y%m%d").date()
        except ValueError:
            return None
        return parsed.isocalendar()[1]
    return None


def resolve_week(value: Any, *, today: date | None = None) -> int:
    """
    Resolve a week number from an int, a 1-2 digit string or a YYYYMMDD
    date string. Anything outside 1..53 falls back to the current ISO week.
    """

    week: int | None = None
    if isinstance(value, bool):
        week = None
    elif isinstance(value, int):
        week = value if 1 <= value <= 53 else None
    elif isinstance(value, str):
        week = _week_from_token(value)

    if week is None:
        return current_iso_week(today)
    return week


def week_from_text(text: str | None) -> int | None:
    """
    Find a week marker such as "Vecka 47", "Vecka 20250714" or
    "Vecka 2025-07-14" in free text.
    """

    if not text:
        return None

    dashed, compact, plain = WEEK_TEXT_PATTERNS
    match = dashed.search(text)
    if match is not None:
        year, month, day = (int(part) for part in match.groups())
        return _iso_week_of(year, month, day)

    for pattern in (compact, plain):
        match = pattern.search(text)
        if match is not None:
            return _week_from_token(match.group(1))
    return None
