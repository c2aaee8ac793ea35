"""
tests/support.py

Test doubles for orchestrator, service and API tests.
"""

from __future__ import annotations

import asyncio
from typing import Any

from app.scraping.base import SourceParser
from app.scraping.config.models import ResilienceConfig, SourceDescriptor
from app.scraping.orchestrator import ResilienceOrchestrator
from app.scraping.registry import ParserRegistry
from app.scraping.types import ExtractionOutcome


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InFlightTracker:
    def __init__(self) -> None:
        self.current = 0
        self.peak = 0

    def enter(self) -> None:
        self.current += 1
        self.peak = max(self.peak, self.current)

    def exit(self) -> None:
        self.current -= 1


def record(name: str, *, weekday: str = "måndag", week: int = 29, price: int = 110, source: str = "Test") -> dict[str, Any]:
    return {
        "name": name,
        "description": f"{name} med tillbehör",
        "price": price,
        "weekday": weekday,
        "week": week,
        "source_name": source,
    }


def outcome(*records: dict[str, Any]) -> ExtractionOutcome:
    return ExtractionOutcome(records=list(records), strategy="table")


class ScriptedParser(SourceParser):
    """
    Parser whose extraction results are queued by the test.

    Queue entries are ExtractionOutcome instances or exceptions to raise;
    once the queue is empty `default` is used.
    """

    def __init__(self, *, descriptor=None, fetch_node=None) -> None:
        super().__init__(descriptor=descriptor, fetch_node=fetch_node)
        self.calls = 0
        self.script: list[Any] = []
        self.default: Any = outcome(record("Dagens husman"))
        self.delay = 0.0
        self.tracker: InFlightTracker | None = None

    def name(self) -> str:
        return self.descriptor.display_name if self.descriptor else "Scripted"

    def target_url(self) -> str:
        return self.descriptor.target_url if self.descriptor else "https://scripted.example/lunch"

    async def produce_offerings(self) -> ExtractionOutcome:
        self.calls += 1
        if self.tracker is not None:
            self.tracker.enter()
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            step = self.script.pop(0) if self.script else self.default
            if isinstance(step, BaseException):
                raise step
            return step
        finally:
            if self.tracker is not None:
                self.tracker.exit()


class ExplodingParser(ScriptedParser):
    """Breaks the execute() contract by raising out of it."""

    async def execute(self):
        self.calls += 1
        raise RuntimeError(f"{self.name()} exploded")


async def _no_fetch(url: str, selector: str):
    return None


def descriptor(
    source_id: str,
    *,
    kind: str = "scripted",
    threshold: int | None = None,
    cooldown: float | None = None,
    active: bool = True,
) -> SourceDescriptor:
    return SourceDescriptor(
        id=source_id,
        display_name=source_id.capitalize(),
        target_url=f"https://{source_id}.example/lunch",
        parser_kind=kind,
        active=active,
        resilience=ResilienceConfig(failure_threshold=threshold, cooldown_seconds=cooldown),
    )


def make_orchestrator(clock: FakeClock | None = None, **kwargs: Any) -> ResilienceOrchestrator:
    registry = ParserRegistry({"scripted": ScriptedParser, "exploding": ExplodingParser})
    return ResilienceOrchestrator(
        fetch_node=_no_fetch,
        registry=registry,
        clock=clock or FakeClock(),
        **kwargs,
    )
