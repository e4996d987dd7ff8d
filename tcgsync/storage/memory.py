"""
In-process storage backends for local runs without a database.
"""

from __future__ import annotations

import copy
import json
import threading
import uuid
from collections.abc import Mapping
from dataclasses import replace
from datetime import timedelta
from typing import Any

from tcgsync.clock import Clock, SystemClock
from tcgsync.domain.cards import CardRecord, GradingRecordInput, PriceUpdate
from tcgsync.errors import CardNotFoundError
from tcgsync.storage.base import CardStore, KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """
    Dict-backed key-value store; values are JSON round-tripped on write.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, default=str)
        with self._lock:
            self._data[key] = encoded

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class InMemoryCardStore(CardStore):
    """
    List-backed card store mirroring the SQLAlchemy store's semantics.
    """

    def __init__(self, cards: list[CardRecord] | None = None, *, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._cards: dict[str, CardRecord] = {card.card_id: card for card in cards or []}
        self.price_records: list[tuple[str, PriceUpdate]] = []
        self.grading_records: list[GradingRecordInput] = []
        self._lock = threading.Lock()

    def add_card(self, *, name: str, series: str = "", number: str = "", game_type: str = "") -> CardRecord:
        card = CardRecord(
            card_id=str(uuid.uuid4()),
            name=name,
            series=series,
            number=number,
            game_type=game_type,
        )
        with self._lock:
            self._cards[card.card_id] = card
        return card

    def search_cards(self, query: str = "", filters: Mapping[str, Any] | None = None) -> list[CardRecord]:
        filters = filters or {}
        term = query.strip().lower()
        game_type = filters.get("game_type")
        limit = max(1, int(filters.get("limit", 1000)))

        with self._lock:
            cards = list(self._cards.values())

        matched = [
            card
            for card in cards
            if (not term or term in card.name.lower() or term in card.series.lower())
            and (not game_type or card.game_type == game_type)
        ]
        matched.sort(key=lambda card: card.name)
        return matched[:limit]

    def update_card_pricing_data(self, card_id: str, data: PriceUpdate) -> None:
        with self._lock:
            card = self._cards.get(card_id)
            if card is None:
                raise CardNotFoundError(card_id)
            self._cards[card_id] = replace(card, last_pricing_update=data.timestamp)
            self.price_records.append((card_id, data))

    def insert_card_grading_data(self, record: GradingRecordInput) -> None:
        with self._lock:
            self.grading_records.append(record)
            card = self._cards.get(record.card_id) if record.card_id else None
            if card is not None:
                self._cards[card.card_id] = replace(card, last_grading_update=record.fetched_at)

    def update_card_details(self, card_id: str, details: Mapping[str, Any]) -> None:
        with self._lock:
            card = self._cards.get(card_id)
            if card is None:
                raise CardNotFoundError(card_id)
            merged = {**copy.deepcopy(card.details), **dict(details)}
            self._cards[card_id] = replace(
                card,
                details=merged,
                last_card_data_update=self._clock.now(),
            )

    def cleanup_expired(self, days_old: int) -> int:
        cutoff = self._clock.now() - timedelta(days=days_old)
        with self._lock:
            before = len(self.price_records) + len(self.grading_records)
            self.price_records = [
                (card_id, data) for card_id, data in self.price_records if data.timestamp >= cutoff
            ]
            self.grading_records = [
                record for record in self.grading_records if record.fetched_at >= cutoff
            ]
            return before - len(self.price_records) - len(self.grading_records)
