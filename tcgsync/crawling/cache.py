"""
TTL result cache persisted through the key-value store.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from tcgsync.clock import Clock, SystemClock
from tcgsync.logging_utils import log_event
from tcgsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

INDEX_SUFFIX = "__index__"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    timestamp: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp >= self.ttl_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "ttl_seconds": self.ttl_seconds,
        }


class ResultCache:
    """
    Key to JSON payload cache with lazy expiry and a soft size cap.

    Entries live under `{namespace}:{key}`; an index blob tracks insertion
    timestamps so sweeps can find expired and oldest entries.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore,
        namespace: str,
        default_ttl_seconds: float,
        max_entries: int = 1000,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._default_ttl_seconds = default_ttl_seconds
        self._max_entries = max(1, max_entries)
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()

    def _entry_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _index_key(self) -> str:
        return f"{self._namespace}:{INDEX_SUFFIX}"

    def _now(self) -> float:
        return self._clock.now().timestamp()

    def _load_index(self) -> dict[str, float]:
        raw = self._store.get(self._index_key())
        if not isinstance(raw, dict):
            return {}
        return {str(key): float(value) for key, value in raw.items()}

    def _save_index(self, index: dict[str, float]) -> None:
        self._store.set(self._index_key(), index)

    def get(self, key: str) -> Any | None:
        """
        Return the cached payload, or None when absent or expired.
        """

        with self._lock:
            raw = self._store.get(self._entry_key(key))
            if not isinstance(raw, dict):
                return None

            entry = CacheEntry(
                key=key,
                payload=raw.get("payload"),
                timestamp=float(raw.get("timestamp", 0.0)),
                ttl_seconds=float(raw.get("ttl_seconds", self._default_ttl_seconds)),
            )
            if entry.is_expired(self._now()):
                self._store.remove(self._entry_key(key))
                index = self._load_index()
                if index.pop(key, None) is not None:
                    self._save_index(index)
                log_event(logger, logging.DEBUG, "cache_entry_expired", namespace=self._namespace, key=key)
                return None
            return entry.payload

    def set(self, key: str, payload: Any, ttl_seconds: float | None = None) -> None:
        entry = CacheEntry(
            key=key,
            payload=payload,
            timestamp=self._now(),
            ttl_seconds=self._default_ttl_seconds if ttl_seconds is None else ttl_seconds,
        )
        with self._lock:
            self._store.set(self._entry_key(key), entry.to_dict())
            index = self._load_index()
            index[key] = entry.timestamp
            self._save_index(index)
            oversized = len(index) > self._max_entries

        if oversized:
            self.sweep()

    def remove(self, key: str) -> None:
        with self._lock:
            self._store.remove(self._entry_key(key))
            index = self._load_index()
            if index.pop(key, None) is not None:
                self._save_index(index)

    def sweep(self) -> int:
        """
        Drop expired entries, then the oldest ones beyond the soft maximum.
        """

        removed = 0
        now = self._now()
        with self._lock:
            index = self._load_index()
            for key in list(index):
                raw = self._store.get(self._entry_key(key))
                if not isinstance(raw, dict):
                    index.pop(key)
                    continue
                ttl = float(raw.get("ttl_seconds", self._default_ttl_seconds))
                if now - float(raw.get("timestamp", 0.0)) >= ttl:
                    self._store.remove(self._entry_key(key))
                    index.pop(key)
                    removed += 1

            overflow = len(index) - self._max_entries
            if overflow > 0:
                for key in sorted(index, key=index.__getitem__)[:overflow]:
                    self._store.remove(self._entry_key(key))
                    index.pop(key)
                    removed += 1

            self._save_index(index)

        if removed:
            log_event(
                logger,
                logging.INFO,
                "cache_swept",
                namespace=self._namespace,
                removed=removed,
                remaining=len(index),
            )
        return removed

    def size(self) -> int:
        with self._lock:
            return len(self._load_index())
