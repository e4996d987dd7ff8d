"""
Storage collaborator interfaces consumed by the crawl and update layers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from tcgsync.domain.cards import CardRecord, GradingRecordInput, PriceUpdate


class KeyValueStore(ABC):
    """
    JSON blob storage for settings, history, source status and cache entries.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """
        Return the stored JSON value or None when absent.
        """

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Store a JSON-serializable value, replacing any previous one.
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Delete a key; missing keys are ignored.
        """


class CardStore(ABC):
    """
    Relational card catalogue used by the type-specific fetchers.
    """

    @abstractmethod
    def search_cards(self, query: str = "", filters: Mapping[str, Any] | None = None) -> list[CardRecord]:
        """
        Return cards matching `query`; supported filters: `game_type`, `limit`.
        """

    @abstractmethod
    def update_card_pricing_data(self, card_id: str, data: PriceUpdate) -> None:
        """
        Persist one price point and bump the card's pricing timestamp.
        """

    @abstractmethod
    def insert_card_grading_data(self, record: GradingRecordInput) -> None:
        """
        Persist one population snapshot.
        """

    @abstractmethod
    def update_card_details(self, card_id: str, details: Mapping[str, Any]) -> None:
        """
        Merge card metadata and bump the card data timestamp.
        """

    @abstractmethod
    def cleanup_expired(self, days_old: int) -> int:
        """
        Delete price and grading records older than `days_old`; return rows removed.
        """
