"""
Shared scraping runtime data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.domain.execution import ClosureInfo, ExtractionStatus
from app.domain.menu import RawRecord


class ExtractionStrategy:
    TABLE = "table"
    MODERN = "modern"


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    Candidate records plus diagnostics for one extraction pass.

    An empty `records` list is either a closed venue or a failed
    extraction; `status` and `closure` tell them apart.
    """

    records: list[RawRecord] = field(default_factory=list)
    status: str = ExtractionStatus.EXTRACTED
    strategy: str | None = None
    closure: ClosureInfo | None = None
    container_selector: str | None = None
    week: int | None = None

    @classmethod
    def failed(cls, *, container_selector: str | None = None) -> "ExtractionOutcome":
        return cls(status=ExtractionStatus.EXTRACTION_FAILED, container_selector=container_selector)
