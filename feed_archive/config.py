"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- FetchConfig: HTTP client settings
- QueueConfig: Shared fetch queue admission and retry settings
- SecurityConfig: URL validation override
- CacheConfig: In-memory parsed-feed cache settings
- AggregateConfig: Multi-feed aggregation bounds
- ExtractConfig: Plain-text snippet extraction settings
- MaterializeConfig: Article-to-Markdown settings
- StorageConfig: Database and document directories
- ActivityConfig: Activity listing and export bounds
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container

Environment variables listed in ENV_OVERRIDES are applied after the YAML file.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from pathlib import Path
from typing import Any

import yaml


@dataclass
class FetchConfig:
    """Configuration for the HTTP transport.

    Attributes:
        timeout_seconds: Per-request timeout
        user_agent: User-Agent header for feed requests
        trust_env: Whether to respect system proxy settings
        max_redirects: Redirect hops followed (each target is validated)
    """

    timeout_seconds: float = 20.0
    user_agent: str = "feed-archive/0.1 (+https://github.com/feed-archive/feed-archive)"
    trust_env: bool = True
    max_redirects: int = 10


@dataclass
class QueueConfig:
    """Configuration for the shared fetch queue.

    Attributes:
        concurrency: Maximum tasks in flight at once
        interval_cap: Maximum task starts per rolling window
        interval_ms: Length of the rolling window in milliseconds
        retries: Retries after the first attempt for retryable failures
        base_delay_ms: Backoff base; attempt i waits base * 2**i
    """

    concurrency: int = 4
    interval_cap: int = 10
    interval_ms: int = 1000
    retries: int = 3
    base_delay_ms: int = 800


@dataclass
class SecurityConfig:
    """Configuration for URL validation.

    Attributes:
        allow_private_networks: Operator override that skips the DNS check
    """

    allow_private_networks: bool = False


@dataclass
class CacheConfig:
    """Configuration for the in-memory parsed-feed cache.

    Attributes:
        feed_ttl_seconds: How long a parsed feed is served without refetching
    """

    feed_ttl_seconds: float = 300.0


@dataclass
class AggregateConfig:
    """Configuration for multi-feed aggregation.

    Attributes:
        batch_size: Feeds fetched in parallel per batch
        overfetch_factor: Stop once limit * overfetch_factor items are collected
        result_factor: Return at most limit * result_factor items
        default_limit: Limit used when the caller gives none
        date_pool_limit: Limit used when collecting items for the date filter
    """

    batch_size: int = 10
    overfetch_factor: int = 3
    result_factor: int = 2
    default_limit: int = 50
    date_pool_limit: int = 100


@dataclass
class ExtractConfig:
    """Configuration for plain-text snippet extraction.

    Attributes:
        primary: Primary extraction method ("bs4", "trafilatura" or "readability")
        fallback: List of fallback methods to try if primary yields nothing
    """

    primary: str = "bs4"
    fallback: list[str] = field(default_factory=lambda: ["trafilatura", "readability"])


@dataclass
class MaterializeConfig:
    """Configuration for article materialization.

    Attributes:
        region: "article" (explicit article/main region, else body) or "readability"
        user_agent: User-Agent header for article and resource downloads
    """

    region: str = "article"
    user_agent: str = "feed-archive/0.1 (+https://github.com/feed-archive/feed-archive)"


@dataclass
class StorageConfig:
    """Configuration for persistent storage.

    Attributes:
        data_dir: Root directory for all persisted data
        db_path: SQLite database file (default: data_dir/feed_archive.db)
        articles_dir: Markdown documents (default: data_dir/articles)
        notes_dir: Markdown notes (default: data_dir/notes)
    """

    data_dir: str = "data"
    db_path: str | None = None
    articles_dir: str | None = None
    notes_dir: str | None = None

    @property
    def database_path(self) -> Path:
        return Path(self.db_path) if self.db_path else Path(self.data_dir) / "feed_archive.db"

    @property
    def articles_path(self) -> Path:
        return Path(self.articles_dir) if self.articles_dir else Path(self.data_dir) / "articles"

    @property
    def notes_path(self) -> Path:
        return Path(self.notes_dir) if self.notes_dir else Path(self.data_dir) / "notes"

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.database_path}"


@dataclass
class ActivityConfig:
    """Configuration for activity listing and export.

    Attributes:
        page_limit_max: Largest page size served by a listing
        export_row_cap: Hard cap on rows scanned by an export
        export_max_days: Largest export period in days
    """

    page_limit_max: int = 200
    export_row_cap: int = 2000
    export_max_days: int = 365


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file inside the data directory
    """

    level: str = "INFO"
    console: bool = True
    file: bool = True
    format: str = "jsonl"
    filename: str = "feed_archive.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    aggregate: AggregateConfig = field(default_factory=AggregateConfig)
    extract: ExtractConfig = field(default_factory=ExtractConfig)
    materialize: MaterializeConfig = field(default_factory=MaterializeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    activity: ActivityConfig = field(default_factory=ActivityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS: dict[str, type] = {
    "fetch": FetchConfig,
    "queue": QueueConfig,
    "security": SecurityConfig,
    "cache": CacheConfig,
    "aggregate": AggregateConfig,
    "extract": ExtractConfig,
    "materialize": MaterializeConfig,
    "storage": StorageConfig,
    "activity": ActivityConfig,
    "logging": LoggingConfig,
}

# env var -> (section, field, converter)
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "FEED_ARCHIVE_FETCH_CONCURRENCY": ("queue", "concurrency", int),
    "FEED_ARCHIVE_FETCH_INTERVAL_CAP": ("queue", "interval_cap", int),
    "FEED_ARCHIVE_FETCH_INTERVAL_MS": ("queue", "interval_ms", int),
    "FEED_ARCHIVE_DATA_DIR": ("storage", "data_dir", str),
    "FEED_ARCHIVE_ALLOW_PRIVATE_NETWORKS": ("security", "allow_private_networks", None),
}


def load_config(path: str | None, environ: dict[str, str] | None = None) -> AppConfig:
    """Load configuration from a YAML file with defaults and env overrides."""
    raw: dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    cfg = _merge_config(AppConfig(), raw)
    apply_env_overrides(cfg, os.environ if environ is None else environ)
    return cfg


def apply_env_overrides(cfg: AppConfig, environ: dict[str, str]) -> None:
    """Apply ENV_OVERRIDES onto cfg in place."""
    for name, (section, attr, convert) in ENV_OVERRIDES.items():
        value = environ.get(name)
        if value is None or value == "":
            continue
        if convert is None:
            converted: Any = _truthy(value)
        else:
            converted = convert(value)
        setattr(getattr(cfg, section), attr, converted)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
        else:
            data[key] = value
    return _fromdict(data)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(**{name: cls(**data[name]) for name, cls in _SECTIONS.items()})


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}
