"""
tests/test_result_cache.py

TTL cache behaviour over the in-memory key-value store.
"""

from __future__ import annotations

import pytest

from tcgsync.crawling.cache import ResultCache
from tcgsync.storage.memory import InMemoryKeyValueStore
from tests.fakes import FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


def _cache(store: InMemoryKeyValueStore, clock: FakeClock, **kwargs: object) -> ResultCache:
    return ResultCache(
        store=store,
        namespace="grading_cache",
        default_ttl_seconds=100.0,
        clock=clock,
        **kwargs,  # type: ignore[arg-type]
    )


class TestResultCache:
    def test_round_trip_before_ttl(self, store: InMemoryKeyValueStore, clock: FakeClock) -> None:
        cache = _cache(store, clock)
        payload = {"total_graded": 150, "authorities": ["psa", "cgc"]}

        cache.set("charizard", payload, ttl_seconds=10)
        clock.advance(9)

        assert cache.get("charizard") == payload

    def test_expired_entry_is_removed(self, store: InMemoryKeyValueStore, clock: FakeClock) -> None:
        cache = _cache(store, clock)
        cache.set("charizard", {"total": 1}, ttl_seconds=10)

        clock.advance(10)

        assert cache.get("charizard") is None
        assert store.get("grading_cache:charizard") is None
        assert cache.size() == 0

    def test_default_ttl(self, store: InMemoryKeyValueStore, clock: FakeClock) -> None:
        cache = _cache(store, clock)
        cache.set("pikachu", [1, 2, 3])

        clock.advance(99)
        assert cache.get("pikachu") == [1, 2, 3]
        clock.advance(1)
        assert cache.get("pikachu") is None

    def test_entries_are_namespaced(self, store: InMemoryKeyValueStore, clock: FakeClock) -> None:
        _cache(store, clock).set("pikachu", "x")

        assert "grading_cache:pikachu" in store.keys()
        assert "grading_cache:__index__" in store.keys()

    def test_remove(self, store: InMemoryKeyValueStore, clock: FakeClock) -> None:
        cache = _cache(store, clock)
        cache.set("pikachu", "x")

        cache.remove("pikachu")

        assert cache.get("pikachu") is None
        assert cache.size() == 0

    def test_sweep_drops_expired_entries(self, store: InMemoryKeyValueStore, clock: FakeClock) -> None:
        cache = _cache(store, clock)
        cache.set("short", "a", ttl_seconds=5)
        cache.set("long", "b", ttl_seconds=500)

        clock.advance(10)

        assert cache.sweep() == 1
        assert cache.size() == 1
        assert cache.get("long") == "b"

    def test_oldest_entries_evicted_over_capacity(self, store: InMemoryKeyValueStore, clock: FakeClock) -> None:
        cache = _cache(store, clock, max_entries=2)

        cache.set("first", 1)
        clock.advance(1)
        cache.set("second", 2)
        clock.advance(1)
        cache.set("third", 3)

        assert cache.size() == 2
        assert cache.get("first") is None
        assert cache.get("third") == 3
