"""
ISO-8601 helpers for JSON round-trips of domain records.
"""

from __future__ import annotations

from datetime import datetime, timezone


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    Parse an ISO datetime string into a timezone-aware datetime.
    """

    if not value:
        return None
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed
