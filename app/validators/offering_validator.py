"""
app/validators/offering_validator.py

Record-level validation for extracted lunch offerings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Iterable, Mapping

from app.domain.execution import ValidationDiagnostic
from app.domain.menu import Offering
from app.scraping.normalization.fields import clean_text, normalize_weekday

NAME_ERROR = "Name must be a non-empty string"
PRICE_ERROR = "Price must be a valid number >= 0"
WEEK_ERROR = "Week must be a valid number between 1 and 53"
WEEKDAY_ERROR = (
    "Weekday must be a valid Swedish weekday (måndag, tisdag, onsdag, torsdag, fredag)"
)
SOURCE_ERROR = "Source name must be a non-empty string"
DESCRIPTION_ERROR = "Description must be a string if provided"


@dataclass(frozen=True)
class OfferingValidation:
    is_valid: bool
    errors: tuple[str, ...] = ()


@dataclass
class BatchValidationResult:
    """
    Partition of candidate records into accepted offerings and diagnostics.
    """

    valid_records: list[Offering] = field(default_factory=list)
    validation_errors: list[ValidationDiagnostic] = field(default_factory=list)
    total_count: int = 0

    @property
    def valid_count(self) -> int:
        return len(self.valid_records)

    @property
    def invalid_count(self) -> int:
        return len(self.validation_errors)


def _as_mapping(record: Any) -> Mapping[str, Any] | None:
    if isinstance(record, Offering):
        return record.to_dict()
    if isinstance(record, Mapping):
        return record
    return None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return not math.isnan(float(value)) and not math.isinf(float(value))


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_offering(record: Any) -> OfferingValidation:
    """
    Check one candidate record against the offering rules.

    Pure and idempotent: the record is never modified.
    """

    payload = _as_mapping(record)
    if payload is None:
        return OfferingValidation(is_valid=False, errors=("Record must be a mapping",))

    errors: list[str] = []

    if not _is_non_empty_string(payload.get("name")):
        errors.append(NAME_ERROR)

    price = payload.get("price")
    if not _is_number(price) or price < 0 or int(price) != price:
        errors.append(PRICE_ERROR)

    week = payload.get("week")
    if not _is_number(week) or int(week) != week or not 1 <= week <= 53:
        errors.append(WEEK_ERROR)

    if normalize_weekday(payload.get("weekday")) is None:
        errors.append(WEEKDAY_ERROR)

    if not _is_non_empty_string(payload.get("source_name")):
        errors.append(SOURCE_ERROR)

    description = payload.get("description")
    if description is not None and not isinstance(description, str):
        errors.append(DESCRIPTION_ERROR)

    return OfferingValidation(is_valid=not errors, errors=tuple(errors))


def _to_offering(payload: Mapping[str, Any]) -> Offering:
    return Offering(
        name=clean_text(payload["name"]),
        description=clean_text(payload.get("description")),
        price=int(payload["price"]),
        weekday=normalize_weekday(payload["weekday"]) or "",
        week=int(payload["week"]),
        source_name=clean_text(payload["source_name"]),
    )


def validate_offerings(records: Iterable[Any]) -> BatchValidationResult:
    """
    Validate a batch, keeping valid records as normalized offerings and
    reporting the rest by their position in the input.
    """

    result = BatchValidationResult()
    for index, record in enumerate(records):
        result.total_count += 1
        outcome = validate_offering(record)
        if outcome.is_valid:
            result.valid_records.append(_to_offering(_as_mapping(record)))
        else:
            result.validation_errors.append(
                ValidationDiagnostic(index=index, errors=outcome.errors, record=record)
            )
    return result
