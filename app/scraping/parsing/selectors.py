"""
Selector configuration for menu extraction strategies.

Every lookup the strategies perform is driven by a `SelectorProfile`, so a
source with unusual markup only needs different data, never different code.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Mapping

from bs4 import Tag

from app.scraping.normalization.fields import clean_text, parse_price

Extractor = Callable[[Tag], Any]


def text_of(node: Tag) -> str:
    return clean_text(node.get_text(" ", strip=True))


def first_line_of(node: Tag) -> str:
    for line in node.get_text("\n", strip=True).split("\n"):
        line = clean_text(line)
        if line:
            return line
    return ""


def price_of(node: Tag) -> int | None:
    return parse_price(node.get_text(" ", strip=True))


def currency_price_of(node: Tag) -> int | None:
    return parse_price(node.get_text(" ", strip=True), require_currency=True)


def price_outside_name(node: Tag, name: str) -> int | None:
    """
    Bare price from the element's full text, read after the name is taken
    out so digits in a dish name are only used when nothing else is left.
    """

    text = text_of(node)
    remainder = text.replace(name, " ", 1) if name else text
    return parse_price(remainder) or parse_price(text)



@dataclass(frozen=True)
class FieldRule:
    """
    One step of a field extraction chain.

    `selector` is looked up inside the candidate element; None applies
    `extract` to the candidate element itself.
    """

    selector: str | None
    extract: Extractor


def _rules(selectors: tuple[str, ...], extract: Extractor) -> tuple[FieldRule, ...]:
    return tuple(FieldRule(selector, extract) for selector in selectors)


NAME_RULES = _rules(
    (".lunch-name", ".name", ".title", "h4", "h5", ".meal-title", "strong", "b"),
    text_of,
) + (FieldRule(None, first_line_of),)

DESCRIPTION_RULES = _rules(
    (".lunch-description", ".description", ".desc", ".details", ".ingredients", "p"),
    text_of,
)

PRICE_RULES = _rules(
    (".lunch-price", ".price", ".cost", ".amount", ".kr", "span"),
    price_of,
) + (FieldRule(None, currency_price_of),)

FIELD_EXTRACTORS: dict[str, Extractor] = {
    "name": text_of,
    "description": text_of,
    "price": price_of,
}


@dataclass(frozen=True)
class SelectorProfile:
    containers: tuple[str, ...] = (
        "div.lunch",
        "section",
        ".lunch-menu",
        "main",
        ".content",
        "#content",
        "body",
    )
    container_keywords: tuple[str, ...] = (
        "lunch",
        "meny",
        "menu",
        "vecka",
        "måndag",
        "tisdag",
    )
    week_headers: tuple[str, ...] = ("h3", ".week-header", ".week-number", "[class*='week']")
    tables: tuple[str, ...] = ("table",)
    table_rows: tuple[str, ...] = ("tr",)
    table_cells: tuple[str, ...] = ("td", "th")
    weekday_headers: tuple[str, ...] = ("h3", "h4", ".day-header", ".tab-header")
    tab_panels: tuple[str, ...] = (
        "[role='tabpanel']",
        "[data-day]",
        "[data-weekday]",
        ".tab-content",
    )
    day_sections: tuple[str, ...] = (
        ".{weekday}",
        ".day-{weekday}",
        "[class*='{weekday}']",
        "#{weekday}",
        "#day-{weekday}",
    )
    lunch_items: tuple[str, ...] = (".lunch-item", ".meal", ".dish", ".menu-item")
    name: tuple[FieldRule, ...] = NAME_RULES
    description: tuple[FieldRule, ...] = DESCRIPTION_RULES
    price: tuple[FieldRule, ...] = PRICE_RULES

    def with_overrides(self, overrides: Mapping[str, list[str]] | None) -> "SelectorProfile":
        """
        Return a profile whose chains start with the given selectors.

        Keys name profile fields; override selectors are tried before the
        defaults. Unknown keys raise ValueError.
        """

        if not overrides:
            return self

        changes: dict[str, Any] = {}
        for key, selectors in overrides.items():
            if key not in SELECTOR_KEYS:
                raise ValueError(f"Unknown selector group: {key}")
            extra = tuple(str(selector) for selector in selectors)
            current = getattr(self, key)
            if key in FIELD_EXTRACTORS:
                changes[key] = _rules(extra, FIELD_EXTRACTORS[key]) + current
            else:
                changes[key] = extra + tuple(item for item in current if item not in extra)
        return replace(self, **changes)

    def day_section_selectors(self, weekday: str) -> list[str]:
        return [template.replace("{weekday}", weekday) for template in self.day_sections]


SELECTOR_KEYS = frozenset(item.name for item in fields(SelectorProfile))

DEFAULT_PROFILE = SelectorProfile()
