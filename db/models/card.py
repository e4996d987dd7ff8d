"""
db/models/card.py

Card catalogue rows consumed by the pricing, card data and grading fetchers.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONPayload, TimestampMixin


class Card(Base, TimestampMixin):
    __tablename__ = "cards"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    series: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    number: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    game_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="pokemon, one-piece, ...",
    )
    details: Mapped[dict[str, Any] | None] = mapped_column(
        JSONPayload,
        nullable=True,
        comment="Card metadata merged from card data sources",
    )
    last_pricing_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_grading_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_card_data_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_cards_name", "name"),
        Index("ix_cards_game_type", "game_type"),
    )
