"""
Type-specific source fetchers and their registry.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from tcgsync.clock import Clock
from tcgsync.crawling.http import PoliteHttpClient
from tcgsync.domain.cards import CardRecord, GradingRecordInput, PriceUpdate
from tcgsync.errors import CrawlError, ParseError, PolicyDeniedError
from tcgsync.grading.aggregator import MultiAuthorityAggregator
from tcgsync.logging_utils import log_event
from tcgsync.sources.models import CrawlSource, SourceType
from tcgsync.storage.base import CardStore

logger = logging.getLogger(__name__)

PRICING_STALE_AFTER = timedelta(hours=6)
GRADING_STALE_AFTER = timedelta(days=7)
CARD_DATA_STALE_AFTER = timedelta(days=7)


@dataclass(frozen=True)
class FetchContext:
    """
    Collaborators shared by every fetcher in a run.
    """

    client: PoliteHttpClient
    card_store: CardStore
    aggregator: MultiAuthorityAggregator
    clock: Clock
    card_batch_limit: int = 1000


def extract_path(payload: Any, path: str) -> Any:
    """
    Walk a dotted path through dicts and lists; numeric parts index lists.
    """

    current = payload
    for part in [segment for segment in path.split(".") if segment]:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            raise ParseError(f"Missing field '{part}' in response path '{path}'")
    return current


def is_stale(last_update: datetime | None, now: datetime, threshold: timedelta) -> bool:
    return last_update is None or now - last_update >= threshold


class SourceFetcher(ABC):
    """
    Updates one data source and returns the number of units written.
    """

    def __init__(self, *, source: CrawlSource, context: FetchContext) -> None:
        self.source = source
        self.context = context
        self.options = source.options

    @property
    def target_key(self) -> str:
        return f"source:{self.source.key}"

    @property
    def request_delay_seconds(self) -> float:
        try:
            return max(0.0, float(self.options.get("request_delay_seconds", 0.0)))
        except (TypeError, ValueError):
            return 0.0

    @abstractmethod
    def fetch(self) -> int:
        """
        Run the update; PolicyDeniedError propagates so the source is skipped.
        """

    def card_params(self, card: CardRecord) -> dict[str, str]:
        mapping = self.options.get("params") or {"q": "name"}
        return {
            str(param): str(getattr(card, str(attribute), "") or "")
            for param, attribute in mapping.items()
        }

    def stale_cards(
        self,
        last_update_of: Callable[[CardRecord], datetime | None],
        threshold: timedelta,
        *,
        game_type: str | None = None,
    ) -> list[CardRecord]:
        filters: dict[str, Any] = {"limit": self.context.card_batch_limit}
        if game_type:
            filters["game_type"] = game_type
        now = self.context.clock.now()
        cards = self.context.card_store.search_cards("", filters)
        return [card for card in cards if is_stale(last_update_of(card), now, threshold)]

    def run_per_card(
        self,
        cards: list[CardRecord],
        handler: Callable[[CardRecord], bool],
    ) -> int:
        """
        Apply `handler` to each card; robots denials abort, crawl failures
        and cards missing from the store are logged. Raise the last failure
        when every card failed.
        """

        updated = 0
        failed = 0
        last_error: Exception | None = None
        for card in cards:
            try:
                if handler(card):
                    updated += 1
            except PolicyDeniedError:
                raise
            except (CrawlError, KeyError) as exc:
                failed += 1
                last_error = exc
                log_event(
                    logger,
                    logging.WARNING,
                    "card_update_failed",
                    source=self.source.key,
                    card_id=card.card_id,
                    card_name=card.name,
                    error=str(exc),
                )

        if last_error is not None and updated == 0 and failed == len(cards):
            raise last_error

        log_event(
            logger,
            logging.INFO,
            "source_cards_updated",
            source=self.source.key,
            candidates=len(cards),
            updated=updated,
            failed=failed,
        )
        return updated

    def require_option(self, name: str) -> Any:
        value = self.options.get(name)
        if value in (None, ""):
            raise ValueError(f"Source '{self.source.key}' is missing option '{name}'")
        return value


class GradingSourceFetcher(SourceFetcher):
    """
    Refreshes population snapshots through the multi-authority aggregator.
    """

    def fetch(self) -> int:
        authority = str(self.options.get("authority") or self.source.source_key)
        cards = self.stale_cards(lambda card: card.last_grading_update, GRADING_STALE_AFTER)

        def update(card: CardRecord) -> bool:
            result = self.context.aggregator.get_distribution(
                card.name,
                card.series,
                card.number,
                [authority],
            )
            written = False
            for name, authority_result in result.authorities.items():
                if not authority_result.success or authority_result.stats is None:
                    continue
                self.context.card_store.insert_card_grading_data(
                    GradingRecordInput(
                        card_name=card.name,
                        card_series=card.series,
                        card_number=card.number,
                        authority=name,
                        stats=authority_result.stats,
                        fetched_at=authority_result.fetched_at or self.context.clock.now(),
                        card_id=card.card_id,
                    )
                )
                written = True
            return written

        return self.run_per_card(cards, update)


class PricingSourceFetcher(SourceFetcher):
    """
    Pulls one price point per stale card from a JSON pricing endpoint.
    """

    def fetch(self) -> int:
        endpoint = str(self.require_option("endpoint"))
        price_path = str(self.require_option("price_path"))
        currency = str(self.options.get("currency") or "USD")
        cards = self.stale_cards(lambda card: card.last_pricing_update, PRICING_STALE_AFTER)

        def update(card: CardRecord) -> bool:
            payload = self.context.client.get_json(
                endpoint,
                target_key=self.target_key,
                params=self.card_params(card),
                min_delay_seconds=self.request_delay_seconds,
            )
            raw_price = extract_path(payload, price_path)
            try:
                price = float(raw_price)
            except (TypeError, ValueError) as exc:
                raise ParseError(f"Invalid price value '{raw_price}' at '{price_path}'") from exc

            self.context.card_store.update_card_pricing_data(
                card.card_id,
                PriceUpdate(
                    source=self.source.source_key,
                    price=price,
                    timestamp=self.context.clock.now(),
                    currency=currency,
                    raw=payload if isinstance(payload, dict) else None,
                ),
            )
            return True

        return self.run_per_card(cards, update)


class CardDataSourceFetcher(SourceFetcher):
    """
    Merges catalogue metadata for stale cards of one game type.
    """

    def fetch(self) -> int:
        endpoint = str(self.require_option("endpoint"))
        data_path = str(self.options.get("data_path") or "")
        game_type = str(self.require_option("game_type"))
        cards = [
            card
            for card in self.stale_cards(
                lambda card: card.last_card_data_update,
                CARD_DATA_STALE_AFTER,
                game_type=game_type,
            )
            if card.game_type == game_type
        ]

        def update(card: CardRecord) -> bool:
            payload = self.context.client.get_json(
                endpoint,
                target_key=self.target_key,
                params=self.card_params(card),
                min_delay_seconds=self.request_delay_seconds,
            )
            details = extract_path(payload, data_path) if data_path else payload
            if not isinstance(details, dict):
                raise ParseError(f"Card data for '{card.name}' is not an object")
            self.context.card_store.update_card_details(card.card_id, details)
            return True

        return self.run_per_card(cards, update)


class MarketDataSourceFetcher(SourceFetcher):
    """
    Matches a market price feed to catalogue cards by name.
    """

    def fetch(self) -> int:
        endpoint = str(self.require_option("endpoint"))
        items_path = str(self.options.get("items_path") or "")
        name_field = str(self.options.get("name_field") or "name")
        price_field = str(self.options.get("price_field") or "price")
        currency = str(self.options.get("currency") or "USD")

        payload = self.context.client.get_json(
            endpoint,
            target_key=self.target_key,
            min_delay_seconds=self.request_delay_seconds,
        )
        items = extract_path(payload, items_path) if items_path else payload
        if not isinstance(items, list):
            raise ParseError(f"Market feed for '{self.source.key}' is not a list")

        prices: dict[str, float] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            name = str(item.get(name_field, "")).strip().lower()
            try:
                price = float(item.get(price_field))
            except (TypeError, ValueError):
                continue
            if name:
                prices[name] = price

        cards = self.context.card_store.search_cards("", {"limit": self.context.card_batch_limit})
        now = self.context.clock.now()
        updated = 0
        for card in cards:
            price = prices.get(card.name.strip().lower())
            if price is None:
                continue
            self.context.card_store.update_card_pricing_data(
                card.card_id,
                PriceUpdate(
                    source=self.source.source_key,
                    price=price,
                    timestamp=now,
                    currency=currency,
                ),
            )
            updated += 1

        log_event(
            logger,
            logging.INFO,
            "market_feed_applied",
            source=self.source.key,
            feed_items=len(items),
            matched=updated,
        )
        return updated


class FetcherRegistry:
    """
    Fetcher registry supporting built-ins and dynamic import paths.
    """

    def __init__(self, registrations: Mapping[SourceType, type[SourceFetcher]] | None = None) -> None:
        builtins: dict[SourceType, type[SourceFetcher]] = {
            SourceType.GRADING: GradingSourceFetcher,
            SourceType.PRICING: PricingSourceFetcher,
            SourceType.CARD_DATA: CardDataSourceFetcher,
            SourceType.MARKET_DATA: MarketDataSourceFetcher,
        }
        if registrations:
            builtins.update(registrations)
        self._registrations = builtins

    def register(self, *, source_type: SourceType, fetcher_class: type[SourceFetcher]) -> None:
        self._registrations[source_type] = fetcher_class

    def create_fetcher(self, *, source: CrawlSource, context: FetchContext) -> SourceFetcher:
        fetcher_class = self._resolve_fetcher_class(source)
        return fetcher_class(source=source, context=context)

    def _resolve_fetcher_class(self, source: CrawlSource) -> type[SourceFetcher]:
        if source.fetcher_class:
            return self._load_dynamic_class(source.fetcher_class)

        resolved = self._registrations.get(source.type)
        if resolved is None:
            allowed = ", ".join(sorted(source_type.value for source_type in self._registrations))
            raise ValueError(
                f"Unsupported source type='{source.type.value}' for source='{source.key}'. "
                f"Allowed types: {allowed}."
            )
        return resolved

    @staticmethod
    def _load_dynamic_class(path: str) -> type[SourceFetcher]:
        if ":" not in path:
            raise ValueError(f"Invalid fetcher_class '{path}'. Use 'module.path:ClassName'.")

        module_path, class_name = path.split(":", 1)
        module = importlib.import_module(module_path)
        loaded = getattr(module, class_name, None)
        if loaded is None:
            raise ValueError(f"Unable to resolve fetcher class '{path}'.")
        if not isinstance(loaded, type) or not issubclass(loaded, SourceFetcher):
            raise ValueError(f"Class '{path}' must inherit from SourceFetcher.")
        return loaded
