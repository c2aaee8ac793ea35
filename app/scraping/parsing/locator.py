"""
Container location for menu documents.
"""

from __future__ import annotations

from typing import Iterable

from bs4 import BeautifulSoup, Tag

from app.scraping.parsing.selectors import text_of

MIN_CONTAINER_TEXT_LENGTH = 10


def _first_match(document: Tag, selector: str) -> Tag | None:
    if not isinstance(document, BeautifulSoup) and document.css.match(selector):
        return document
    return document.select_one(selector)


def is_valid_container(node: Tag | None, keywords: Iterable[str]) -> bool:
    if node is None or node.find(True) is None:
        return False
    text = text_of(node)
    if len(text) <= MIN_CONTAINER_TEXT_LENGTH:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def locate_container(
    document: Tag | None,
    selectors: Iterable[str],
    keywords: Iterable[str],
) -> tuple[Tag | None, str | None]:
    """
    Return the first candidate container that looks like a lunch menu,
    together with the selector that found it.
    """

    if document is None:
        return None, None
    keywords = tuple(keyword.lower() for keyword in keywords)
    for selector in selectors:
        node = _first_match(document, selector)
        if is_valid_container(node, keywords):
            return node, selector
    return None, None
