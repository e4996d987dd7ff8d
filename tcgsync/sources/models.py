"""
Data source configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping

from tcgsync.domain.timestamps import parse_iso_datetime, to_iso


class SourceType(str, Enum):
    GRADING = "grading"
    PRICING = "pricing"
    CARD_DATA = "card_data"
    MARKET_DATA = "market_data"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)


class SourceStatus(str, Enum):
    IDLE = "idle"
    SUCCESS = "success"
    ERROR = "error"


def make_source_key(source_type: SourceType | str, source_key: str) -> str:
    type_value = source_type.value if isinstance(source_type, SourceType) else str(source_type)
    return f"{type_value}.{source_key}"


@dataclass
class CrawlSource:
    """
    One configured data source; `key` is `{type}.{source_key}`.
    """

    source_key: str
    type: SourceType
    display_name: str
    enabled: bool = True
    priority: Priority = Priority.MEDIUM
    update_interval_hours: float = 24.0
    last_update: datetime | None = None
    status: SourceStatus = SourceStatus.IDLE
    last_error: str | None = None
    units_updated: int = 0
    options: dict[str, Any] = field(default_factory=dict)
    fetcher_class: str | None = None

    @property
    def key(self) -> str:
        return make_source_key(self.type, self.source_key)

    def is_due(self, now: datetime) -> bool:
        if not self.enabled:
            return False
        if self.last_update is None:
            return True
        return now - self.last_update >= timedelta(hours=self.update_interval_hours)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "source_key": self.source_key,
            "type": self.type.value,
            "display_name": self.display_name,
            "enabled": self.enabled,
            "priority": self.priority.value,
            "update_interval_hours": self.update_interval_hours,
            "last_update": to_iso(self.last_update),
            "status": self.status.value,
            "last_error": self.last_error,
            "units_updated": self.units_updated,
        }

    def state_payload(self) -> dict[str, Any]:
        """
        Mutable fields persisted across restarts.
        """

        return {
            "enabled": self.enabled,
            "priority": self.priority.value,
            "update_interval_hours": self.update_interval_hours,
            "last_update": to_iso(self.last_update),
            "status": self.status.value,
            "last_error": self.last_error,
            "units_updated": self.units_updated,
        }

    def apply_state(self, payload: Mapping[str, Any]) -> None:
        if "enabled" in payload:
            self.enabled = bool(payload["enabled"])
        if payload.get("priority") in {priority.value for priority in Priority}:
            self.priority = Priority(payload["priority"])
        interval = payload.get("update_interval_hours")
        if isinstance(interval, (int, float)) and not isinstance(interval, bool) and interval > 0:
            self.update_interval_hours = float(interval)
        if "last_update" in payload:
            self.last_update = parse_iso_datetime(payload.get("last_update"))
        if payload.get("status") in {status.value for status in SourceStatus}:
            self.status = SourceStatus(payload["status"])
        if "last_error" in payload:
            self.last_error = payload.get("last_error")
        if "units_updated" in payload:
            self.units_updated = int(payload.get("units_updated") or 0)
