"""
Extraction for tabbed, card or heading based menu layouts.

Candidates for each weekday come from three places: weekday headings and
their following siblings, tab panels labelled with the weekday, and
sections whose class or id names the weekday.
"""

from __future__ import annotations

import logging
from typing import Any

from bs4 import Tag

from app.domain.menu import WEEKDAYS, RawRecord
from app.scraping.logging_utils import log_event
from app.scraping.normalization.fields import clean_text, normalize_weekday
from app.scraping.parsing.selectors import FieldRule, SelectorProfile, price_outside_name, text_of

logger = logging.getLogger(__name__)

MAX_SIBLING_DEPTH = 10
LUNCH_CLASS_HINTS = ("lunch", "item", "dish", "meal")
MIN_ITEM_TEXT_LENGTH = 5


def _joined(selectors: tuple[str, ...]) -> str:
    return ", ".join(selectors)


def _mentions_weekday(text: str, weekday: str) -> bool:
    return weekday in text.lower()


def _is_weekday_heading(node: Tag, profile: SelectorProfile) -> bool:
    if not node.css.match(_joined(profile.weekday_headers)):
        return False
    text = text_of(node).lower()
    return any(day in text for day in WEEKDAYS)


def _looks_like_item(node: Tag) -> bool:
    classes = " ".join(node.get("class") or []).lower()
    if any(hint in classes for hint in LUNCH_CLASS_HINTS):
        return True
    return len(text_of(node)) > MIN_ITEM_TEXT_LENGTH


def _items_in(node: Tag, profile: SelectorProfile) -> list[Tag]:
    return node.select(_joined(profile.lunch_items))


def _from_headings(container: Tag, weekday: str, profile: SelectorProfile) -> list[Tag]:
    found: list[Tag] = []
    for heading in container.select(_joined(profile.weekday_headers)):
        if not _mentions_weekday(text_of(heading), weekday):
            continue
        for depth, sibling in enumerate(heading.find_next_siblings(True)):
            if depth >= MAX_SIBLING_DEPTH or _is_weekday_heading(sibling, profile):
                break
            if sibling.css.match(_joined(profile.lunch_items)):
                found.append(sibling)
                continue
            nested = _items_in(sibling, profile)
            if nested:
                found.extend(nested)
            elif _looks_like_item(sibling):
                found.append(sibling)
    return found


def _panel_label(container: Tag, panel: Tag) -> str:
    parts = [str(panel.get("aria-label") or "")]
    labelled_by = panel.get("aria-labelledby")
    if labelled_by:
        label_node = container.find(id=labelled_by)
        if label_node is not None:
            parts.append(text_of(label_node))
    heading = panel.find(["h1", "h2", "h3", "h4", "h5", "h6"])
    if heading is not None:
        parts.append(text_of(heading))
    parts.extend(clean_text(str(text)) for text in panel.find_all(string=True, recursive=False))
    return " ".join(parts)


def _panel_matches(container: Tag, panel: Tag, weekday: str) -> bool:
    declared = [panel.get(attribute) for attribute in ("data-day", "data-weekday")]
    if any(value and normalize_weekday(value) == weekday for value in declared):
        return True
    return _mentions_weekday(_panel_label(container, panel), weekday)


def _from_tab_panels(container: Tag, weekday: str, profile: SelectorProfile) -> list[Tag]:
    found: list[Tag] = []
    for panel in container.select(_joined(profile.tab_panels)):
        if not _panel_matches(container, panel, weekday):
            continue
        items = _items_in(panel, profile)
        if items:
            found.extend(items)
        elif text_of(panel):
            found.append(panel)
    return found


def _from_day_sections(container: Tag, weekday: str, profile: SelectorProfile) -> list[Tag]:
    found: list[Tag] = []
    for selector in profile.day_section_selectors(weekday):
        section = container.select_one(selector)
        if section is not None:
            found.extend(_items_in(section, profile))
    return found


def _first_value(node: Tag, rules: tuple[FieldRule, ...]) -> Any:
    for rule in rules:
        target = node if rule.selector is None else node.select_one(rule.selector)
        if target is None:
            continue
        value = rule.extract(target)
        if value:
            return value
    return None


def record_from_element(
    node: Tag,
    *,
    profile: SelectorProfile,
    weekday: str,
    week: int,
    source_name: str,
) -> RawRecord | None:
    name = _first_value(node, profile.name)
    if not name:
        return None
    price = _first_value(node, profile.price) or price_outside_name(node, name)
    if not price:
        log_event(
            logger,
            logging.DEBUG,
            "menu_element_skipped",
            reason="missing_price",
            weekday=weekday,
            text=text_of(node)[:100],
        )
        return None
    return {
        "name": name,
        "description": _first_value(node, profile.description) or "",
        "price": price,
        "weekday": weekday,
        "week": week,
        "source_name": source_name,
    }


def find_weekday_elements(
    container: Tag,
    weekday: str,
    *,
    profile: SelectorProfile,
) -> list[Tag]:
    return (
        _from_headings(container, weekday, profile)
        + _from_tab_panels(container, weekday, profile)
        + _from_day_sections(container, weekday, profile)
    )


def extract_from_modern_layout(
    container: Tag,
    *,
    profile: SelectorProfile,
    week: int,
    source_name: str,
) -> list[RawRecord]:
    records: list[RawRecord] = []
    seen: set[int] = set()
    for weekday in WEEKDAYS:
        for element in find_weekday_elements(container, weekday, profile=profile):
            if id(element) in seen:
                continue
            seen.add(id(element))
            record = record_from_element(
                element,
                profile=profile,
                weekday=weekday,
                week=week,
                source_name=source_name,
            )
            if record is not None:
                records.append(record)
    return records
