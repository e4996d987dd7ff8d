"""
Repository for JSON key-value entries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from db.models.key_value_entry import KeyValueEntry


class KeyValueRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, key: str) -> KeyValueEntry | None:
        return self._session.get(KeyValueEntry, key)

    def upsert(self, key: str, value: Any) -> KeyValueEntry:
        entry = self.get(key)
        now = datetime.now(timezone.utc)
        if entry is None:
            entry = KeyValueEntry(key=key, value=value, updated_at=now)
            self._session.add(entry)
        else:
            entry.value = value
            entry.updated_at = now
        self._session.flush()
        return entry

    def delete(self, key: str) -> bool:
        entry = self.get(key)
        if entry is None:
            return False
        self._session.delete(entry)
        self._session.flush()
        return True
