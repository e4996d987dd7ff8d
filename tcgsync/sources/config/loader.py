"""
JSON loader for default data source definitions.
"""

from __future__ import annotations

import json

from tcgsync.config import resolve_config_path
from tcgsync.sources.models import CrawlSource, Priority, SourceType


def load_source_definitions(*, config_path: str) -> list[CrawlSource]:
    """
    Load default data sources from a JSON file, in file order.
    """

    path = resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Source config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    sources = raw_data.get("sources", [])
    if not isinstance(sources, list):
        raise ValueError("Invalid source config: 'sources' must be a list.")

    parsed: list[CrawlSource] = []
    seen: set[str] = set()
    for entry in sources:
        if not isinstance(entry, dict):
            continue

        name = str(entry.get("name", "")).strip()
        type_value = str(entry.get("type", "")).strip().lower()
        if not name or type_value not in {source_type.value for source_type in SourceType}:
            continue

        source = CrawlSource(
            source_key=name,
            type=SourceType(type_value),
            display_name=_optional_str(entry.get("display_name")) or name,
            enabled=_optional_bool(entry.get("enabled"), True),
            priority=_optional_priority(entry.get("priority")),
            update_interval_hours=_positive_float(entry.get("update_interval_hours"), 24.0),
            options=_normalize_options(entry.get("options", {})),
            fetcher_class=_optional_str(entry.get("fetcher_class")),
        )
        if source.key in seen:
            raise ValueError(f"Duplicate source key in config: {source.key}")
        seen.add(source.key)
        parsed.append(source)

    return parsed


def _normalize_options(options: object) -> dict[str, object]:
    if not isinstance(options, dict):
        return {}
    return {str(key).strip(): value for key, value in options.items() if str(key).strip()}


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_priority(value: object) -> Priority:
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {priority.value for priority in Priority}:
            return Priority(normalized)
    return Priority.MEDIUM


def _positive_float(value: object, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


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
