"""
Source parser exports.
"""

from app.scraping.parsers.menu_page_parser import MenuPageParser
from app.scraping.parsers.niagara_parser import NiagaraParser

__all__ = ["MenuPageParser", "NiagaraParser"]
