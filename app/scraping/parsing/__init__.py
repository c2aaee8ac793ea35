"""
BeautifulSoup-based menu extraction layer.
"""

from app.scraping.parsing.extraction import extract_menu, extract_week
from app.scraping.parsing.locator import locate_container
from app.scraping.parsing.selectors import DEFAULT_PROFILE, FieldRule, SelectorProfile

__all__ = [
    "DEFAULT_PROFILE",
    "FieldRule",
    "SelectorProfile",
    "extract_menu",
    "extract_week",
    "locate_container",
]
