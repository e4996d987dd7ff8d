"""
tests/test_fetchers.py

Type-specific fetchers against the in-memory card store and FakeSession.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from tcgsync.crawling.cache import ResultCache
from tcgsync.crawling.http import PoliteHttpClient
from tcgsync.crawling.rate_limiter import RateLimiter
from tcgsync.crawling.robots import RobotsPolicyEngine
from tcgsync.domain.cards import PriceUpdate
from tcgsync.errors import CardNotFoundError, NetworkError, ParseError, PolicyDeniedError
from tcgsync.grading.aggregator import MultiAuthorityAggregator
from tcgsync.sources.fetchers import (
    CardDataSourceFetcher,
    FetchContext,
    FetcherRegistry,
    GradingSourceFetcher,
    MarketDataSourceFetcher,
    PricingSourceFetcher,
    SourceFetcher,
    extract_path,
)
from tcgsync.sources.models import CrawlSource, SourceType
from tcgsync.storage.memory import InMemoryCardStore, InMemoryKeyValueStore
from tests.fakes import FakeClock, FakeResponse, FakeSession

PRICE_URL = "https://prices.example.com/v1/price"
CARDS_URL = "https://cards.example.com/v2/cards"
FEED_URL = "https://market.example.com/trends"
PSA_URL = "https://www.psacard.com/pop"


class StaticFetcher(SourceFetcher):
    def fetch(self) -> int:
        return 42


def _context(session: FakeSession, cards: InMemoryCardStore, clock: FakeClock) -> FetchContext:
    robots = RobotsPolicyEngine(session=session, user_agent="TCGSyncBot/1.0", clock=clock)  # type: ignore[arg-type]
    client = PoliteHttpClient(
        session=session,  # type: ignore[arg-type]
        robots=robots,
        rate_limiter=RateLimiter(clock=clock),
        user_agent="TCGSyncBot/1.0",
    )
    aggregator = MultiAuthorityAggregator(
        client=client,
        cache=ResultCache(
            store=InMemoryKeyValueStore(),
            namespace="grading_cache",
            default_ttl_seconds=60,
            clock=clock,
        ),
        clock=clock,
    )
    return FetchContext(client=client, card_store=cards, aggregator=aggregator, clock=clock)


def _source(source_type: SourceType, name: str, **options: object) -> CrawlSource:
    return CrawlSource(source_key=name, type=source_type, display_name=name, options=dict(options))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cards() -> InMemoryCardStore:
    store = InMemoryCardStore()
    store.add_card(name="Charizard", series="Base Set", number="4", game_type="pokemon")
    store.add_card(name="Luffy", series="Romance Dawn", number="OP01-024", game_type="one-piece")
    return store


class TestExtractPath:
    def test_nested_dicts_and_lists(self) -> None:
        payload = {"results": [{"marketPrice": 320.5}]}
        assert extract_path(payload, "results.0.marketPrice") == 320.5

    def test_missing_field(self) -> None:
        with pytest.raises(ParseError, match="results"):
            extract_path({}, "results.0")

    def test_empty_path_returns_payload(self) -> None:
        assert extract_path([1, 2], "") == [1, 2]


class TestPricingSourceFetcher:
    def _fetcher(self, session: FakeSession, cards: InMemoryCardStore, clock: FakeClock) -> PricingSourceFetcher:
        source = _source(
            SourceType.PRICING,
            "tcgplayer",
            endpoint=PRICE_URL,
            params={"productName": "name", "number": "number"},
            price_path="results.0.marketPrice",
            currency="USD",
        )
        return PricingSourceFetcher(source=source, context=_context(session, cards, clock))

    def test_updates_every_stale_card(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        session = FakeSession({PRICE_URL: FakeResponse(json_body={"results": [{"marketPrice": "12.40"}]})})

        assert self._fetcher(session, cards, clock).fetch() == 2

        prices = sorted(update.price for _, update in cards.price_records)
        assert prices == [12.4, 12.4]
        assert cards.price_records[0][1].source == "tcgplayer"
        assert f"{PRICE_URL}?productName=Charizard&number=4" in session.urls()

    def test_fresh_cards_are_skipped(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        session = FakeSession({PRICE_URL: FakeResponse(json_body={"results": [{"marketPrice": 5}]})})
        fetcher = self._fetcher(session, cards, clock)
        fetcher.fetch()

        clock.advance(timedelta(hours=1).total_seconds())

        assert fetcher.fetch() == 0

    def test_all_cards_failing_raises(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        session = FakeSession({PRICE_URL: FakeResponse(status_code=502)})

        with pytest.raises(NetworkError):
            self._fetcher(session, cards, clock).fetch()

    def test_partial_failure_counts_successes(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        def respond(url: str) -> FakeResponse:
            if "Luffy" in url:
                return FakeResponse(json_body={"results": []})
            return FakeResponse(json_body={"results": [{"marketPrice": 99}]})

        session = FakeSession({PRICE_URL: respond})

        assert self._fetcher(session, cards, clock).fetch() == 1

    def test_card_removed_mid_run_counts_as_failure(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        luffy_id = cards.search_cards("Luffy")[0].card_id
        original_update = cards.update_card_pricing_data

        def update_or_vanish(card_id: str, data: PriceUpdate) -> None:
            if card_id == luffy_id:
                raise CardNotFoundError(card_id)
            original_update(card_id, data)

        cards.update_card_pricing_data = update_or_vanish  # type: ignore[method-assign]
        session = FakeSession({PRICE_URL: FakeResponse(json_body={"results": [{"marketPrice": 7}]})})

        assert self._fetcher(session, cards, clock).fetch() == 1
        assert [card_id for card_id, _ in cards.price_records] == [cards.search_cards("Charizard")[0].card_id]

    def test_every_card_missing_raises(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        def vanish(card_id: str, data: PriceUpdate) -> None:
            raise CardNotFoundError(card_id)

        cards.update_card_pricing_data = vanish  # type: ignore[method-assign]
        session = FakeSession({PRICE_URL: FakeResponse(json_body={"results": [{"marketPrice": 7}]})})

        with pytest.raises(CardNotFoundError):
            self._fetcher(session, cards, clock).fetch()

    def test_robots_denial_propagates(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        session = FakeSession(
            {"https://prices.example.com/robots.txt": FakeResponse(text="User-agent: *\nDisallow: /v1/")}
        )

        with pytest.raises(PolicyDeniedError):
            self._fetcher(session, cards, clock).fetch()

    def test_missing_option(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        source = _source(SourceType.PRICING, "broken", price_path="price")
        fetcher = PricingSourceFetcher(source=source, context=_context(FakeSession(), cards, clock))

        with pytest.raises(ValueError, match="endpoint"):
            fetcher.fetch()


class TestCardDataSourceFetcher:
    def test_only_matching_game_type(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        session = FakeSession({CARDS_URL: FakeResponse(json_body={"data": [{"hp": "120", "rarity": "Holo"}]})})
        source = _source(
            SourceType.CARD_DATA,
            "pokemonApi",
            endpoint=CARDS_URL,
            params={"name": "name"},
            data_path="data.0",
            game_type="pokemon",
        )

        updated = CardDataSourceFetcher(source=source, context=_context(session, cards, clock)).fetch()

        assert updated == 1
        charizard = cards.search_cards("Charizard")[0]
        assert charizard.details == {"hp": "120", "rarity": "Holo"}
        assert charizard.last_card_data_update is not None
        assert cards.search_cards("Luffy")[0].details == {}


class TestGradingSourceFetcher:
    def test_writes_population_snapshots(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        session = FakeSession(
            {PSA_URL: FakeResponse(text="<p>Total Graded: 10</p><p>Grade 10: 4</p><p>Grade 9: 6</p>")}
        )
        source = _source(SourceType.GRADING, "psa", authority="psa")

        updated = GradingSourceFetcher(source=source, context=_context(session, cards, clock)).fetch()

        assert updated == 2
        assert {record.authority for record in cards.grading_records} == {"psa"}
        assert cards.grading_records[0].stats.total_graded == 10


class TestMarketDataSourceFetcher:
    def test_matches_cards_by_name(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        feed = {
            "items": [
                {"name": "charizard", "price": 410},
                {"name": "Pikachu", "price": 3},
                {"name": "Luffy", "price": "n/a"},
            ]
        }
        session = FakeSession({FEED_URL: FakeResponse(json_body=feed)})
        source = _source(SourceType.MARKET_DATA, "marketAnalytics", endpoint=FEED_URL, items_path="items")

        updated = MarketDataSourceFetcher(source=source, context=_context(session, cards, clock)).fetch()

        assert updated == 1
        assert cards.price_records[0][1].price == 410.0

    def test_non_list_feed(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        session = FakeSession({FEED_URL: FakeResponse(json_body={"items": {"name": "x"}})})
        source = _source(SourceType.MARKET_DATA, "marketAnalytics", endpoint=FEED_URL, items_path="items")

        with pytest.raises(ParseError):
            MarketDataSourceFetcher(source=source, context=_context(session, cards, clock)).fetch()


class TestFetcherRegistry:
    def test_builtin_by_type(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        fetcher = FetcherRegistry().create_fetcher(
            source=_source(SourceType.MARKET_DATA, "feed"),
            context=_context(FakeSession(), cards, clock),
        )
        assert isinstance(fetcher, MarketDataSourceFetcher)

    def test_dynamic_class(self, cards: InMemoryCardStore, clock: FakeClock) -> None:
        source = _source(SourceType.PRICING, "custom")
        source.fetcher_class = "tests.test_fetchers:StaticFetcher"

        fetcher = FetcherRegistry().create_fetcher(source=source, context=_context(FakeSession(), cards, clock))

        assert fetcher.fetch() == 42

    @pytest.mark.parametrize("path", ["tests.test_fetchers.StaticFetcher", "tests.test_fetchers:Missing", "tests.fakes:FakeClock"])
    def test_invalid_dynamic_class(self, path: str, cards: InMemoryCardStore, clock: FakeClock) -> None:
        source = _source(SourceType.PRICING, "custom")
        source.fetcher_class = path

        with pytest.raises(ValueError):
            FetcherRegistry().create_fetcher(source=source, context=_context(FakeSession(), cards, clock))
