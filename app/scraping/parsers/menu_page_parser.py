"""
Config-driven parser for a single weekly lunch menu page.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from app.scraping.base import SourceParser
from app.scraping.errors import ConfigurationError, SourceUnavailable
from app.scraping.parsing.extraction import extract_menu
from app.scraping.parsing.selectors import DEFAULT_PROFILE, SelectorProfile
from app.scraping.types import ExtractionOutcome

if TYPE_CHECKING:
    from app.scraping.config.models import SourceDescriptor
    from app.scraping.fetcher import FetchNode


class MenuPageParser(SourceParser):
    """
    Parser that reads its name, URL and selector overrides from the
    source descriptor.
    """

    default_name = "Unknown Restaurant"
    default_url = ""
    document_selector = "body"
    base_profile: SelectorProfile = DEFAULT_PROFILE

    def __init__(
        self,
        *,
        descriptor: "SourceDescriptor | None" = None,
        fetch_node: "FetchNode | None" = None,
        today: date | None = None,
    ) -> None:
        super().__init__(descriptor=descriptor, fetch_node=fetch_node)
        overrides = descriptor.selectors if descriptor is not None else None
        try:
            self.profile = self.base_profile.with_overrides(overrides)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        self.today = today

    def name(self) -> str:
        if self.descriptor is not None:
            return self.descriptor.display_name
        return self.default_name

    def target_url(self) -> str:
        if self.descriptor is not None:
            return self.descriptor.target_url
        return self.default_url

    async def produce_offerings(self) -> ExtractionOutcome:
        if self.fetch_node is None:
            raise ConfigurationError(f"No document fetcher configured for {self.name()}")

        document = await self.fetch_node(self.target_url(), self.document_selector)
        if document is None:
            raise SourceUnavailable(
                f"No document returned for {self.target_url()}",
                url=self.target_url(),
            )
        return extract_menu(
            document,
            source_name=self.name(),
            profile=self.profile,
            today=self.today,
        )
