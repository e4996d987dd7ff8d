"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.card import Card
from db.models.card_grading_record import CardGradingRecord
from db.models.card_price_record import CardPriceRecord
from db.models.key_value_entry import KeyValueEntry

__all__ = [
    "Card",
    "CardGradingRecord",
    "CardPriceRecord",
    "KeyValueEntry",
]
