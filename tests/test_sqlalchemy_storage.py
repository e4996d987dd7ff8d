"""
tests/test_sqlalchemy_storage.py

SQLAlchemy-backed stores against an in-memory SQLite database.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 - registers all ORM models on Base.metadata
from db.base import Base
from db.models import Card, CardPriceRecord
from db.session import build_session_factory, session_scope
from tcgsync.domain.cards import GradingRecordInput, PriceUpdate
from tcgsync.domain.grading import GradeStats
from tcgsync.errors import CardNotFoundError
from tcgsync.storage.sqlalchemy_storage import SQLAlchemyCardStore, SQLAlchemyKeyValueStore
from tests.fakes import FakeClock


@pytest.fixture()
def factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def card_ids(factory: sessionmaker) -> dict[str, str]:
    cards = {
        "Charizard": Card(id=uuid.uuid4(), name="Charizard", series="Base Set", number="4", game_type="pokemon"),
        "Luffy": Card(id=uuid.uuid4(), name="Luffy", series="Romance Dawn", number="OP01-024", game_type="one-piece"),
    }
    with session_scope(factory) as session:
        session.add_all(cards.values())
    return {name: str(card.id) for name, card in cards.items()}


class TestSQLAlchemyKeyValueStore:
    def test_set_get_overwrite_remove(self, factory: sessionmaker) -> None:
        store = SQLAlchemyKeyValueStore(session_factory=factory)

        store.set("multi_source_auto_update_settings", {"enabled": True, "update_time": "02:00"})
        assert store.get("multi_source_auto_update_settings") == {"enabled": True, "update_time": "02:00"}

        store.set("multi_source_auto_update_settings", {"enabled": False, "update_time": "03:00"})
        assert store.get("multi_source_auto_update_settings")["enabled"] is False

        store.remove("multi_source_auto_update_settings")
        assert store.get("multi_source_auto_update_settings") is None

    def test_missing_key(self, factory: sessionmaker) -> None:
        store = SQLAlchemyKeyValueStore(session_factory=factory)

        assert store.get("absent") is None
        store.remove("absent")

    def test_list_values(self, factory: sessionmaker) -> None:
        store = SQLAlchemyKeyValueStore(session_factory=factory)

        store.set("multi_source_auto_update_history", [{"run_id": "a"}, {"run_id": "b"}])

        assert [entry["run_id"] for entry in store.get("multi_source_auto_update_history")] == ["a", "b"]


class TestSQLAlchemyCardStore:
    def test_search_filters(self, factory: sessionmaker, card_ids: dict[str, str]) -> None:
        store = SQLAlchemyCardStore(session_factory=factory)

        assert [card.name for card in store.search_cards()] == ["Charizard", "Luffy"]
        assert [card.name for card in store.search_cards("romance")] == ["Luffy"]
        assert [card.name for card in store.search_cards("", {"game_type": "pokemon"})] == ["Charizard"]
        assert len(store.search_cards("", {"limit": 1})) == 1

    def test_pricing_update_bumps_timestamp(self, factory: sessionmaker, card_ids: dict[str, str]) -> None:
        store = SQLAlchemyCardStore(session_factory=factory)
        at = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)

        store.update_card_pricing_data(
            card_ids["Charizard"],
            PriceUpdate(source="tcgplayer", price=321.5, timestamp=at, raw={"marketPrice": 321.5}),
        )

        card = store.search_cards("Charizard")[0]
        assert card.last_pricing_update == at
        with session_scope(factory) as session:
            record = session.scalars(select(CardPriceRecord)).one()
            assert record.price == 321.5
            assert record.raw_payload == {"marketPrice": 321.5}

    def test_details_are_merged(self, factory: sessionmaker, card_ids: dict[str, str]) -> None:
        clock = FakeClock()
        store = SQLAlchemyCardStore(session_factory=factory, clock=clock)

        store.update_card_details(card_ids["Luffy"], {"color": "Red"})
        store.update_card_details(card_ids["Luffy"], {"cost": 2})

        card = store.search_cards("Luffy")[0]
        assert card.details == {"color": "Red", "cost": 2}
        assert card.last_card_data_update == clock.now()

    def test_unknown_card_details(self, factory: sessionmaker) -> None:
        store = SQLAlchemyCardStore(session_factory=factory)

        with pytest.raises(CardNotFoundError):
            store.update_card_details(str(uuid.uuid4()), {"color": "Red"})

    def test_unknown_card_pricing(self, factory: sessionmaker) -> None:
        store = SQLAlchemyCardStore(session_factory=factory)
        at = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)

        with pytest.raises(CardNotFoundError):
            store.update_card_pricing_data(str(uuid.uuid4()), PriceUpdate(source="ebay", price=1.0, timestamp=at))
        with session_scope(factory) as session:
            assert session.scalars(select(CardPriceRecord)).all() == []

    def test_grading_record_bumps_timestamp(self, factory: sessionmaker, card_ids: dict[str, str]) -> None:
        store = SQLAlchemyCardStore(session_factory=factory)
        at = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)

        store.insert_card_grading_data(
            GradingRecordInput(
                card_name="Charizard",
                card_series="Base Set",
                card_number="4",
                authority="psa",
                stats=GradeStats.from_distribution({"10": 4, "9": 6}),
                fetched_at=at,
                card_id=card_ids["Charizard"],
            )
        )

        assert store.search_cards("Charizard")[0].last_grading_update == at

    def test_cleanup_cutoff_follows_clock(self, factory: sessionmaker, card_ids: dict[str, str]) -> None:
        clock = FakeClock()
        store = SQLAlchemyCardStore(session_factory=factory, clock=clock)
        now = clock.now()

        store.update_card_pricing_data(
            card_ids["Charizard"],
            PriceUpdate(source="ebay", price=10.0, timestamp=now - timedelta(days=40)),
        )
        store.update_card_pricing_data(card_ids["Charizard"], PriceUpdate(source="ebay", price=12.0, timestamp=now))

        assert store.cleanup_expired(30) == 1
        with session_scope(factory) as session:
            assert [record.price for record in session.scalars(select(CardPriceRecord))] == [12.0]
