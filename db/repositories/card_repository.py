"""
Repository for card catalogue reads and price/grading writes.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Select, delete, or_, select
from sqlalchemy.orm import Session

from db.models.card import Card
from db.models.card_grading_record import CardGradingRecord
from db.models.card_price_record import CardPriceRecord


class CardRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_card(self, card_id: uuid.UUID) -> Card | None:
        return self._session.get(Card, card_id)

    def search_cards(
        self,
        *,
        query: str = "",
        game_type: str | None = None,
        limit: int = 1000,
    ) -> list[Card]:
        stmt: Select[tuple[Card]] = select(Card)

        term = query.strip()
        if term:
            pattern = f"%{term}%"
            stmt = stmt.where(or_(Card.name.ilike(pattern), Card.series.ilike(pattern)))
        if game_type:
            stmt = stmt.where(Card.game_type == game_type)

        stmt = stmt.order_by(Card.name.asc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def add_price_record(
        self,
        *,
        card_id: uuid.UUID,
        source: str,
        price: float,
        currency: str,
        recorded_at: datetime,
        raw_payload: dict[str, Any] | None = None,
    ) -> CardPriceRecord | None:
        card = self.get_card(card_id)
        if card is None:
            return None
        record = CardPriceRecord(
            card_id=card_id,
            source=source,
            price=price,
            currency=currency,
            recorded_at=recorded_at,
            raw_payload=raw_payload,
        )
        self._session.add(record)
        card.last_pricing_update = recorded_at
        self._session.flush()
        return record

    def add_grading_record(self, record: CardGradingRecord) -> CardGradingRecord:
        self._session.add(record)
        if record.card_id is not None:
            card = self.get_card(record.card_id)
            if card is not None:
                card.last_grading_update = record.fetched_at
        self._session.flush()
        return record

    def merge_card_details(
        self,
        *,
        card_id: uuid.UUID,
        details: dict[str, Any],
        updated_at: datetime,
    ) -> Card | None:
        card = self.get_card(card_id)
        if card is None:
            return None
        card.details = {**(card.details or {}), **details}
        card.last_card_data_update = updated_at
        self._session.flush()
        return card

    def delete_price_records_before(self, cutoff: datetime) -> int:
        result = self._session.execute(
            delete(CardPriceRecord).where(CardPriceRecord.recorded_at < cutoff)
        )
        return int(result.rowcount or 0)

    def delete_grading_records_before(self, cutoff: datetime) -> int:
        result = self._session.execute(
            delete(CardGradingRecord).where(CardGradingRecord.fetched_at < cutoff)
        )
        return int(result.rowcount or 0)
