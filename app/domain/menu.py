"""
app/domain/menu.py

Domain models for validated lunch offerings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

WEEKDAYS: tuple[str, ...] = ("måndag", "tisdag", "onsdag", "torsdag", "fredag")

WEEKDAY_ABBREVIATIONS: dict[str, str] = {
    "mån": "måndag",
    "tis": "tisdag",
    "ons": "onsdag",
    "tor": "torsdag",
    "fre": "fredag",
}

ENGLISH_WEEKDAYS: dict[str, str] = {
    "monday": "måndag",
    "tuesday": "tisdag",
    "wednesday": "onsdag",
    "thursday": "torsdag",
    "friday": "fredag",
}

# Candidate record produced by an extraction strategy, before validation.
RawRecord = dict[str, Any]


@dataclass(frozen=True)
class Offering:
    """
    One validated lunch dish served by a source on a given weekday.
    """

    name: str
    description: str
    price: int
    weekday: str
    week: int
    source_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "weekday": self.weekday,
            "week": self.week,
            "source_name": self.source_name,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Offering":
        return cls(
            name=str(payload["name"]),
            description=str(payload.get("description") or ""),
            price=int(payload["price"]),
            weekday=str(payload["weekday"]),
            week=int(payload["week"]),
            source_name=str(payload["source_name"]),
        )
