"""
tcgsync/config.py

Environment-driven runtime settings for crawling and scheduled updates.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

DEFAULT_USER_AGENT = "TCGSyncBot/1.0 (+https://example.com/bot)"
DEFAULT_SOURCES_CONFIG_PATH = "tcgsync/sources/config/sources.json"


@dataclass(frozen=True)
class CrawlerSettings:
    """
    Runtime settings shared by the robots engine, fetchers and scheduler.
    """

    user_agent: str = DEFAULT_USER_AGENT
    request_timeout_seconds: float = 15.0
    robots_timeout_seconds: float = 10.0
    max_redirects: int = 5
    robots_cache_ttl_seconds: float = 3600.0
    allow_when_robots_unreachable: bool = False
    grading_cache_ttl_seconds: float = 24 * 60 * 60
    cache_max_entries: int = 1000
    connectivity_probe_url: str = "https://www.google.com"
    connectivity_timeout_seconds: float = 5.0
    history_limit: int = 100
    retention_days: int = 30
    card_batch_limit: int = 1000
    default_update_time: str = "02:00"
    scheduler_timezone: str = "UTC"
    storage_backend: str = "sqlalchemy"
    sources_config_path: str = DEFAULT_SOURCES_CONFIG_PATH


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


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


def project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (project_root() / candidate).resolve()


@lru_cache(maxsize=1)
def get_crawler_settings() -> CrawlerSettings:
    """
    Return cached crawler settings from environment variables.
    """

    load_env_files()
    storage_backend = _get_str_env("TCG_SYNC_STORAGE_BACKEND", "sqlalchemy").lower()
    if storage_backend not in {"sqlalchemy", "memory"}:
        storage_backend = "sqlalchemy"

    return CrawlerSettings(
        user_agent=_get_str_env("TCG_SYNC_USER_AGENT", DEFAULT_USER_AGENT),
        request_timeout_seconds=max(
            1.0,
            _get_float_env("TCG_SYNC_REQUEST_TIMEOUT_SECONDS", 15.0),
        ),
        robots_timeout_seconds=max(
            1.0,
            _get_float_env("TCG_SYNC_ROBOTS_TIMEOUT_SECONDS", 10.0),
        ),
        max_redirects=max(0, _get_int_env("TCG_SYNC_MAX_REDIRECTS", 5)),
        robots_cache_ttl_seconds=max(
            60.0,
            _get_float_env("TCG_SYNC_ROBOTS_CACHE_TTL_SECONDS", 3600.0),
        ),
        allow_when_robots_unreachable=_get_bool_env(
            "TCG_SYNC_ALLOW_WHEN_ROBOTS_UNREACHABLE",
            False,
        ),
        grading_cache_ttl_seconds=max(
            60.0,
            _get_float_env("TCG_SYNC_GRADING_CACHE_TTL_SECONDS", 24 * 60 * 60),
        ),
        cache_max_entries=max(1, _get_int_env("TCG_SYNC_CACHE_MAX_ENTRIES", 1000)),
        connectivity_probe_url=_get_str_env(
            "TCG_SYNC_CONNECTIVITY_PROBE_URL",
            "https://www.google.com",
        ),
        connectivity_timeout_seconds=max(
            1.0,
            _get_float_env("TCG_SYNC_CONNECTIVITY_TIMEOUT_SECONDS", 5.0),
        ),
        history_limit=max(1, _get_int_env("TCG_SYNC_HISTORY_LIMIT", 100)),
        retention_days=max(1, _get_int_env("TCG_SYNC_RETENTION_DAYS", 30)),
        card_batch_limit=max(1, _get_int_env("TCG_SYNC_CARD_BATCH_LIMIT", 1000)),
        default_update_time=_get_str_env("TCG_SYNC_DEFAULT_UPDATE_TIME", "02:00"),
        scheduler_timezone=_get_str_env("TCG_SYNC_SCHEDULER_TIMEZONE", "UTC"),
        storage_backend=storage_backend,
        sources_config_path=str(
            resolve_config_path(
                _get_str_env("TCG_SYNC_SOURCES_CONFIG_PATH", DEFAULT_SOURCES_CONFIG_PATH)
            )
        ),
    )
