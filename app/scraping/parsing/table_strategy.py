"""
Table-based menu extraction: one table per weekday, one dish per row.
"""

from __future__ import annotations

import logging

from bs4 import Tag

from app.domain.menu import WEEKDAYS, RawRecord
from app.scraping.logging_utils import log_event
from app.scraping.normalization.fields import parse_price
from app.scraping.parsing.selectors import SelectorProfile, first_line_of, text_of

logger = logging.getLogger(__name__)

MIN_ROW_CELLS = 3


def _select_all(node: Tag, selectors: tuple[str, ...]) -> list[Tag]:
    return node.select(", ".join(selectors))


def record_from_row(
    row: Tag,
    *,
    profile: SelectorProfile,
    weekday: str,
    week: int,
    source_name: str,
) -> RawRecord | None:
    cells = _select_all(row, profile.table_cells)
    if len(cells) < MIN_ROW_CELLS:
        return None

    name = text_of(cells[0])
    if not name:
        return None

    price = parse_price(text_of(cells[2]))
    if price is None:
        log_event(
            logger,
            logging.DEBUG,
            "menu_table_row_skipped",
            reason="invalid_price",
            weekday=weekday,
            price_text=text_of(cells[2]),
        )
        return None

    return {
        "name": name,
        "description": first_line_of(cells[1]),
        "price": price,
        "weekday": weekday,
        "week": week,
        "source_name": source_name,
    }


def extract_from_tables(
    container: Tag,
    *,
    profile: SelectorProfile,
    week: int,
    source_name: str,
) -> list[RawRecord]:
    """
    Map the n-th table in the container to the n-th weekday and read one
    candidate record per row. Rows that are too short or lack a name or
    positive price are skipped.
    """

    tables = _select_all(container, profile.tables)
    if not tables:
        return []

    records: list[RawRecord] = []
    for weekday, table in zip(WEEKDAYS, tables):
        for row in _select_all(table, profile.table_rows):
            record = record_from_row(
                row,
                profile=profile,
                weekday=weekday,
                week=week,
                source_name=source_name,
            )
            if record is not None:
                records.append(record)
    return records
