"""
tcgsync/domain/cards.py

Card catalogue records exchanged with the relational card store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tcgsync.domain.grading import GradeStats


@dataclass(frozen=True)
class CardRecord:
    """
    One card as seen by the update fetchers.
    """

    card_id: str
    name: str
    series: str = ""
    number: str = ""
    game_type: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    last_pricing_update: datetime | None = None
    last_grading_update: datetime | None = None
    last_card_data_update: datetime | None = None


@dataclass(frozen=True)
class PriceUpdate:
    """
    Price point captured from one pricing or market source.
    """

    source: str
    price: float
    timestamp: datetime
    currency: str = "USD"
    raw: dict[str, Any] | None = None


@dataclass(frozen=True)
class GradingRecordInput:
    """
    Population snapshot prepared for persistence.
    """

    card_name: str
    card_series: str
    card_number: str
    authority: str
    stats: GradeStats
    fetched_at: datetime
    card_id: str | None = None
