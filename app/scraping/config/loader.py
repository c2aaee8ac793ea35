"""
Environment + JSON config loader for menu scraping.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

from app.scraping.config.models import MenuScrapingSettings, ResilienceConfig, SourceDescriptor
from app.scraping.errors import ConfigurationError

CACHE_BACKENDS = {"memory", "sqlalchemy"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


@lru_cache(maxsize=1)
def get_menu_scraping_settings() -> MenuScrapingSettings:
    """
    Return cached menu scraping settings from environment variables.
    """

    load_env_files()
    config_path = _get_str_env(
        "MENU_SOURCES_CONFIG_PATH",
        "app/scraping/config/sources.json",
    )
    cache_backend = _get_str_env("MENU_CACHE_BACKEND", "memory").lower()
    if cache_backend not in CACHE_BACKENDS:
        cache_backend = "memory"

    return MenuScrapingSettings(
        sources_config_path=str(_resolve_config_path(config_path)),
        user_agent=_get_str_env(
            "MENU_FETCH_USER_AGENT",
            "LunchtableBot/0.1 (+https://example.invalid/lunchtable)",
        ),
        fetch_timeout_seconds=max(1.0, _get_float_env("MENU_FETCH_TIMEOUT_SECONDS", 30.0)),
        fetch_max_attempts=max(1, _get_int_env("MENU_FETCH_MAX_ATTEMPTS", 3)),
        fetch_backoff_base_seconds=max(0.0, _get_float_env("MENU_FETCH_BACKOFF_SECONDS", 1.0)),
        fetch_backoff_max_seconds=max(0.0, _get_float_env("MENU_FETCH_BACKOFF_MAX_SECONDS", 5.0)),
        failure_threshold=max(1, _get_int_env("CIRCUIT_BREAKER_FAILURE_THRESHOLD", 5)),
        cooldown_seconds=max(0.0, _get_float_env("CIRCUIT_BREAKER_COOLDOWN_SECONDS", 60.0)),
        max_concurrency=max(1, _get_int_env("MAX_CONCURRENCY", 3)),
        cache_backend=cache_backend,
        cache_ttl_days=max(1, _get_int_env("CACHE_TTL_DAYS", 14)),
        cache_max_attempts=max(1, _get_int_env("CACHE_MAX_RETRIES", 3)),
        cache_backoff_base_seconds=max(0.0, _get_float_env("CACHE_BASE_DELAY_SECONDS", 0.1)),
        cache_backoff_max_seconds=max(0.0, _get_float_env("CACHE_MAX_DELAY_SECONDS", 5.0)),
        retry_jitter_ratio=min(1.0, max(0.0, _get_float_env("RETRY_JITTER_RATIO", 0.1))),
    )


def load_source_descriptors(*, config_path: str) -> list[SourceDescriptor]:
    """
    Load source descriptors from a JSON file.

    Entries must at least carry `id` and `url`; structural checks beyond
    that happen at registration time.
    """

    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Menu source config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw_data, dict):
        raise ConfigurationError("Invalid source config: top level must be an object.")
    sources = raw_data.get("sources", [])
    if not isinstance(sources, list):
        raise ConfigurationError("Invalid source config: 'sources' must be a list.")

    parsed: list[SourceDescriptor] = []
    for entry in sources:
        if not isinstance(entry, dict):
            continue

        source_id = str(entry.get("id", "")).strip()
        url = str(entry.get("url", "")).strip()
        if not source_id or not url:
            continue

        parsed.append(
            SourceDescriptor(
                id=source_id,
                display_name=str(entry.get("name", source_id)).strip() or source_id,
                target_url=url,
                parser_kind=str(entry.get("parser", "menu_page")).strip().lower(),
                active=_optional_bool(entry.get("active"), True),
                resilience=_parse_resilience(entry.get("resilience")),
                selectors=_normalize_selectors(entry.get("selectors", {})),
                parser_class=_optional_str(entry.get("parser_class")),
            )
        )

    return parsed


def _parse_resilience(value: object) -> ResilienceConfig:
    if not isinstance(value, dict):
        return ResilienceConfig()
    threshold = _optional_int(value.get("failure_threshold"))
    cooldown = _optional_float(value.get("cooldown_seconds"))
    return ResilienceConfig(failure_threshold=threshold, cooldown_seconds=cooldown)


def _normalize_selectors(selectors: object) -> dict[str, list[str]]:
    if not isinstance(selectors, dict):
        return {}

    normalized: dict[str, list[str]] = {}
    for key, value in selectors.items():
        if not isinstance(key, str):
            continue
        if isinstance(value, str):
            selector_list = [value.strip()] if value.strip() else []
        elif isinstance(value, list):
            selector_list = [
                item.strip()
                for item in value
                if isinstance(item, str) and item.strip()
            ]
        else:
            selector_list = []
        if selector_list:
            normalized[key.strip()] = selector_list
    return normalized


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
