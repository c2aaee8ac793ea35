"""
Parser for Restaurang Niagara's weekly lunch page.
"""

from __future__ import annotations

from app.scraping.parsers.menu_page_parser import MenuPageParser


class NiagaraParser(MenuPageParser):
    """
    Niagara publishes the week as one table per weekday inside `div.lunch`,
    with a tabbed card layout on newer versions of the site.
    """

    default_name = "Niagara"
    default_url = "https://restaurangniagara.se/lunch/"
