"""
Structured logging and timing helpers for menu scraping workflows.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.

    Fields whose value is None are dropped to keep lines short.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event}
    payload.update({key: value for key, value in fields.items() if value is not None})
    logger.log(level, json.dumps(payload, default=str, ensure_ascii=False, sort_keys=True))


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def elapsed_ms(started: float) -> float:
    """Milliseconds elapsed since a `time.perf_counter()` reading."""
    return round((time.perf_counter() - started) * 1000.0, 3)
