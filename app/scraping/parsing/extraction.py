"""
Fallback policy tying container location, week detection and the
extraction strategies together.
"""

from __future__ import annotations

import logging
from datetime import date

from bs4 import Tag

from app.domain.execution import ExtractionStatus
from app.scraping.logging_utils import log_event
from app.scraping.normalization.closure import detect_closure
from app.scraping.normalization.fields import current_iso_week, week_from_text
from app.scraping.parsing.locator import locate_container
from app.scraping.parsing.modern_strategy import extract_from_modern_layout
from app.scraping.parsing.selectors import DEFAULT_PROFILE, SelectorProfile, text_of
from app.scraping.parsing.table_strategy import extract_from_tables
from app.scraping.types import ExtractionOutcome, ExtractionStrategy

logger = logging.getLogger(__name__)


def extract_week(
    container: Tag,
    *,
    profile: SelectorProfile = DEFAULT_PROFILE,
    today: date | None = None,
) -> int:
    """
    Week number announced by the menu, falling back to the current ISO week.
    """

    for selector in profile.week_headers:
        for node in container.select(selector):
            week = week_from_text(text_of(node))
            if week is not None:
                return week
    week = week_from_text(text_of(container))
    if week is not None:
        return week
    return current_iso_week(today)


def extract_menu(
    document: Tag | None,
    *,
    source_name: str,
    profile: SelectorProfile = DEFAULT_PROFILE,
    today: date | None = None,
) -> ExtractionOutcome:
    """
    Locate the menu container and run table extraction, then the modern
    layout extraction, then closure detection when both came up empty.
    """

    container, selector = locate_container(
        document,
        profile.containers,
        profile.container_keywords,
    )
    if container is None:
        log_event(logger, logging.WARNING, "menu_container_not_found", source=source_name)
        return ExtractionOutcome.failed()

    week = extract_week(container, profile=profile, today=today)

    for strategy, extract in (
        (ExtractionStrategy.TABLE, extract_from_tables),
        (ExtractionStrategy.MODERN, extract_from_modern_layout),
    ):
        records = extract(container, profile=profile, week=week, source_name=source_name)
        log_event(
            logger,
            logging.INFO,
            "menu_strategy_completed",
            source=source_name,
            strategy=strategy,
            item_count=len(records),
        )
        if records:
            return ExtractionOutcome(
                records=records,
                status=ExtractionStatus.EXTRACTED,
                strategy=strategy,
                container_selector=selector,
                week=week,
            )

    closure = detect_closure(text_of(container))
    status = ExtractionStatus.CLOSED if closure.is_closed else ExtractionStatus.EXTRACTION_FAILED
    log_event(
        logger,
        logging.INFO,
        "menu_extraction_empty",
        source=source_name,
        status=status,
        reason=closure.reason,
        indicators=list(closure.indicators),
    )
    return ExtractionOutcome(
        status=status,
        closure=closure,
        container_selector=selector,
        week=week,
    )
