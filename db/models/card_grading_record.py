"""
db/models/card_grading_record.py

Population report snapshots per card and grading authority.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONPayload


class CardGradingRecord(Base):
    __tablename__ = "card_grading_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    card_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cards.id", ondelete="SET NULL"),
        nullable=True,
    )
    card_name: Mapped[str] = mapped_column(String(255), nullable=False)
    card_series: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    card_number: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    authority: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="psa, cgc, ars or overall",
    )
    total_graded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    grade_distribution: Mapped[dict[str, int]] = mapped_column(JSONPayload, nullable=False)
    average_grade: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    highest_grade: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    lowest_grade: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_card_grading_records_card_name_series", "card_name", "card_series"),
        Index("ix_card_grading_records_fetched_at", "fetched_at"),
    )
