"""
Storage layer exports.
"""

from tcgsync.storage.base import CardStore, KeyValueStore
from tcgsync.storage.memory import InMemoryCardStore, InMemoryKeyValueStore
from tcgsync.storage.sqlalchemy_storage import SQLAlchemyCardStore, SQLAlchemyKeyValueStore

__all__ = [
    "CardStore",
    "InMemoryCardStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLAlchemyCardStore",
    "SQLAlchemyKeyValueStore",
]
