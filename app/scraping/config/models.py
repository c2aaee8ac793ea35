"""
Menu source and runtime configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ResilienceConfig:
    """
    Per-source circuit breaker overrides; None falls back to the
    orchestrator defaults.
    """

    failure_threshold: int | None = None
    cooldown_seconds: float | None = None


@dataclass(frozen=True)
class SourceDescriptor:
    """
    One menu source registered with the orchestrator.
    """

    id: str
    display_name: str
    target_url: str
    parser_kind: str
    active: bool = True
    resilience: ResilienceConfig = field(default_factory=ResilienceConfig)
    selectors: dict[str, list[str]] = field(default_factory=dict)
    parser_class: str | None = None


@dataclass(frozen=True)
class MenuScrapingSettings:
    """
    Runtime settings for menu fetching, orchestration and caching.
    """

    sources_config_path: str
    user_agent: str
    fetch_timeout_seconds: float
    fetch_max_attempts: int
    fetch_backoff_base_seconds: float
    fetch_backoff_max_seconds: float
    failure_threshold: int
    cooldown_seconds: float
    max_concurrency: int
    cache_backend: str
    cache_ttl_days: int
    cache_max_attempts: int
    cache_backoff_base_seconds: float
    cache_backoff_max_seconds: float
    retry_jitter_ratio: float
