"""
SQLAlchemy-backed storage implementations.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from sqlalchemy.orm import sessionmaker

from db.base import as_utc
from db.models.card import Card
from db.models.card_grading_record import CardGradingRecord
from db.repositories import CardRepository, KeyValueRepository
from db.session import session_scope
from tcgsync.clock import Clock, SystemClock
from tcgsync.domain.cards import CardRecord, GradingRecordInput, PriceUpdate
from tcgsync.errors import CardNotFoundError
from tcgsync.storage.base import CardStore, KeyValueStore


class SQLAlchemyKeyValueStore(KeyValueStore):
    """
    Persist JSON blobs in the `key_value_entries` table.
    """

    def __init__(self, *, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Any | None:
        with session_scope(self._session_factory) as session:
            entry = KeyValueRepository(session).get(key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: Any) -> None:
        with session_scope(self._session_factory) as session:
            KeyValueRepository(session).upsert(key, value)

    def remove(self, key: str) -> None:
        with session_scope(self._session_factory) as session:
            KeyValueRepository(session).delete(key)


class SQLAlchemyCardStore(CardStore):
    """
    Card catalogue reads and price/grading writes through the repository.
    """

    def __init__(self, *, session_factory: sessionmaker, clock: Clock | None = None) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def search_cards(self, query: str = "", filters: Mapping[str, Any] | None = None) -> list[CardRecord]:
        filters = filters or {}
        with session_scope(self._session_factory) as session:
            rows = CardRepository(session).search_cards(
                query=query,
                game_type=filters.get("game_type"),
                limit=int(filters.get("limit", 1000)),
            )
            return [_to_card_record(row) for row in rows]

    def update_card_pricing_data(self, card_id: str, data: PriceUpdate) -> None:
        with session_scope(self._session_factory) as session:
            record = CardRepository(session).add_price_record(
                card_id=uuid.UUID(card_id),
                source=data.source,
                price=data.price,
                currency=data.currency,
                recorded_at=data.timestamp,
                raw_payload=data.raw,
            )
            if record is None:
                raise CardNotFoundError(card_id)

    def insert_card_grading_data(self, record: GradingRecordInput) -> None:
        with session_scope(self._session_factory) as session:
            CardRepository(session).add_grading_record(
                CardGradingRecord(
                    card_id=uuid.UUID(record.card_id) if record.card_id else None,
                    card_name=record.card_name,
                    card_series=record.card_series,
                    card_number=record.card_number,
                    authority=record.authority,
                    total_graded=record.stats.total_graded,
                    grade_distribution=dict(record.stats.grade_distribution),
                    average_grade=record.stats.average_grade,
                    highest_grade=record.stats.highest_grade,
                    lowest_grade=record.stats.lowest_grade,
                    fetched_at=record.fetched_at,
                )
            )

    def update_card_details(self, card_id: str, details: Mapping[str, Any]) -> None:
        with session_scope(self._session_factory) as session:
            updated = CardRepository(session).merge_card_details(
                card_id=uuid.UUID(card_id),
                details=dict(details),
                updated_at=self._clock.now(),
            )
            if updated is None:
                raise CardNotFoundError(card_id)

    def cleanup_expired(self, days_old: int) -> int:
        cutoff = self._clock.now() - timedelta(days=days_old)
        with session_scope(self._session_factory) as session:
            repository = CardRepository(session)
            removed = repository.delete_price_records_before(cutoff)
            removed += repository.delete_grading_records_before(cutoff)
            return removed


def _to_card_record(row: Card) -> CardRecord:
    return CardRecord(
        card_id=str(row.id),
        name=row.name,
        series=row.series or "",
        number=row.number or "",
        game_type=row.game_type,
        details=dict(row.details or {}),
        last_pricing_update=as_utc(row.last_pricing_update),
        last_grading_update=as_utc(row.last_grading_update),
        last_card_data_update=as_utc(row.last_card_data_update),
    )
