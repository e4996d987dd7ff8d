"""
In-process registry of configured data sources.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from tcgsync.errors import SourceNotFoundError
from tcgsync.logging_utils import log_event
from tcgsync.sources.models import PRIORITY_ORDER, CrawlSource, SourceStatus, SourceType

logger = logging.getLogger(__name__)


class SourceRegistry:
    """
    Holds sources in registration order and applies status updates.
    """

    def __init__(self, sources: Iterable[CrawlSource]) -> None:
        self._sources: dict[str, CrawlSource] = {}
        for source in sources:
            if source.key in self._sources:
                raise ValueError(f"Duplicate source key: {source.key}")
            self._sources[source.key] = copy.deepcopy(source)

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, key: object) -> bool:
        return key in self._sources

    def all(self) -> list[CrawlSource]:
        return list(self._sources.values())

    def keys(self) -> list[str]:
        return list(self._sources)

    def by_type(self) -> dict[str, list[CrawlSource]]:
        grouped: dict[str, list[CrawlSource]] = {source_type.value: [] for source_type in SourceType}
        for source in self._sources.values():
            grouped[source.type.value].append(source)
        return grouped

    def find_by_key(self, key: str) -> CrawlSource:
        source = self._sources.get(key)
        if source is None:
            raise SourceNotFoundError(f"Unknown data source '{key}'")
        return source

    def toggle_enabled(self, key: str, enabled: bool) -> CrawlSource:
        source = self.find_by_key(key)
        source.enabled = enabled
        log_event(logger, logging.INFO, "source_toggled", source=key, enabled=enabled)
        return source

    def set_interval(self, key: str, hours: float) -> CrawlSource:
        if hours <= 0:
            raise ValueError("update_interval_hours must be greater than zero")
        source = self.find_by_key(key)
        source.update_interval_hours = float(hours)
        log_event(logger, logging.INFO, "source_interval_updated", source=key, hours=hours)
        return source

    def record_attempt(
        self,
        key: str,
        status: SourceStatus,
        at: datetime,
        *,
        units_updated: int = 0,
        error: str | None = None,
    ) -> CrawlSource:
        source = self.find_by_key(key)
        source.status = status
        source.last_update = at
        source.units_updated = units_updated
        source.last_error = error
        return source

    def status_snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {
            source_type: [source.to_dict() for source in sources]
            for source_type, sources in self.by_type().items()
        }

    def group_by_priority(
        self,
        sources: Iterable[CrawlSource] | None = None,
    ) -> dict[str, list[CrawlSource]]:
        """
        Enabled sources bucketed high, medium, low; order within a bucket
        follows registration order.
        """

        candidates = self.all() if sources is None else list(sources)
        candidate_keys = {source.key for source in candidates if source.enabled}

        groups: dict[str, list[CrawlSource]] = {priority.value: [] for priority in PRIORITY_ORDER}
        for source in self._sources.values():
            if source.key in candidate_keys:
                groups[source.priority.value].append(source)
                candidate_keys.discard(source.key)

        # Sources passed in but never registered keep their input order.
        for source in candidates:
            if source.key in candidate_keys:
                groups[source.priority.value].append(source)
                candidate_keys.discard(source.key)
        return groups

    def due_sources(self, now: datetime) -> list[CrawlSource]:
        return [source for source in self._sources.values() if source.is_due(now)]

    def to_payload(self) -> dict[str, dict[str, Any]]:
        return {key: source.state_payload() for key, source in self._sources.items()}

    def load_payload(self, payload: Mapping[str, Any] | None) -> None:
        """
        Apply persisted state over the defaults; unknown keys are ignored.
        """

        if not isinstance(payload, Mapping):
            return
        for key, state in payload.items():
            source = self._sources.get(key)
            if source is None:
                log_event(logger, logging.WARNING, "source_state_ignored", source=key)
                continue
            if isinstance(state, Mapping):
                source.apply_state(state)
