"""
Persisted auto-update state: settings, history and storage keys.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tcgsync.domain.timestamps import parse_iso_datetime, to_iso
from tcgsync.domain.updates import UpdateRun
from tcgsync.logging_utils import log_event
from tcgsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "multi_source_auto_update_settings"
HISTORY_KEY = "multi_source_auto_update_history"
LAST_UPDATE_TIME_KEY = "multi_source_last_update_time"
SOURCE_STATUS_KEY = "multi_source_status"

UPDATE_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_update_time(value: str) -> tuple[int, int]:
    """
    Validate a 24h `HH:MM` string and return `(hour, minute)`.
    """

    match = UPDATE_TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Invalid update time '{value}'. Use 24h HH:MM.")
    return int(match.group(1)), int(match.group(2))


@dataclass(frozen=True)
class AutoUpdateSettings:
    enabled: bool
    update_time: str

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "update_time": self.update_time}


class SettingsStore:
    """
    Reads and writes auto-update settings and the last update time.
    """

    def __init__(self, *, store: KeyValueStore, default_update_time: str) -> None:
        parse_update_time(default_update_time)
        self._store = store
        self._default_update_time = default_update_time

    @property
    def default_update_time(self) -> str:
        return self._default_update_time

    def load(self) -> AutoUpdateSettings:
        raw = self._store.get(SETTINGS_KEY)
        if not isinstance(raw, dict):
            return AutoUpdateSettings(enabled=False, update_time=self._default_update_time)

        update_time = str(raw.get("update_time") or self._default_update_time)
        try:
            parse_update_time(update_time)
        except ValueError:
            log_event(logger, logging.WARNING, "settings_update_time_invalid", update_time=update_time)
            update_time = self._default_update_time
        return AutoUpdateSettings(enabled=bool(raw.get("enabled", False)), update_time=update_time)

    def save(self, settings: AutoUpdateSettings) -> None:
        self._store.set(SETTINGS_KEY, settings.to_dict())

    def last_update_time(self) -> datetime | None:
        raw = self._store.get(LAST_UPDATE_TIME_KEY)
        return parse_iso_datetime(raw) if isinstance(raw, str) else None

    def mark_updated(self, at: datetime) -> None:
        self._store.set(LAST_UPDATE_TIME_KEY, to_iso(at))


class UpdateHistory:
    """
    Bounded run history, newest first, persisted as one JSON list.
    """

    def __init__(self, *, store: KeyValueStore, limit: int = 100) -> None:
        self._store = store
        self._limit = max(1, limit)
        self._runs: list[UpdateRun] = []
        self._lock = threading.Lock()

    def load(self) -> None:
        raw = self._store.get(HISTORY_KEY)
        runs: list[UpdateRun] = []
        if isinstance(raw, list):
            for entry in raw:
                if not isinstance(entry, dict):
                    continue
                try:
                    runs.append(UpdateRun.from_dict(entry))
                except (KeyError, TypeError, ValueError) as exc:
                    log_event(logger, logging.WARNING, "history_entry_skipped", error=str(exc))
        with self._lock:
            self._runs = runs[: self._limit]

    def append(self, run: UpdateRun) -> None:
        with self._lock:
            self._runs.insert(0, run)
            del self._runs[self._limit :]
            payload = [entry.to_dict() for entry in self._runs]
        self._store.set(HISTORY_KEY, payload)

    def recent(self, limit: int = 50) -> list[UpdateRun]:
        with self._lock:
            return list(self._runs[: max(0, limit)])

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)
