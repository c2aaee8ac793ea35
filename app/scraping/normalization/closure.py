"""
Closure detection for menu containers that produced no offerings.
"""

from __future__ import annotations

import re

from app.domain.execution import ClosureInfo

CLOSURE_KEYWORDS: tuple[str, ...] = (
    "semesterstängt",
    "semester",
    "stängt",
    "sommarstängt",
    "tillfälligt stängt",
    "uppehåll",
    "paus",
    "closed",
    "vacation",
    "underhåll",
    "maintenance",
)
VACATION_WEEKS_REGEX = re.compile(r"v\.?\s*\d+\s*[-–]\s*\d+", flags=re.IGNORECASE)
VACATION_WEEKS_INDICATOR = "vacation week pattern detected"


def detect_closure(text: str | None) -> ClosureInfo:
    lowered = (text or "").lower()

    indicators = [keyword for keyword in CLOSURE_KEYWORDS if keyword in lowered]
    if VACATION_WEEKS_REGEX.search(lowered):
        indicators.append(VACATION_WEEKS_INDICATOR)

    if indicators:
        reason = "Restaurant appears closed: " + ", ".join(indicators)
        return ClosureInfo(is_closed=True, reason=reason, indicators=tuple(indicators))
    return ClosureInfo(is_closed=False, reason="Restaurant appears to be open")
