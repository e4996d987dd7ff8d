"""
tests/test_rate_limiter.py

Per-target minimum gap enforcement, driven by FakeClock.
"""

from __future__ import annotations

from tcgsync.crawling.rate_limiter import RateLimiter
from tests.fakes import FakeClock


class TestRateLimiter:
    def test_first_call_does_not_wait(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        assert limiter.respect_delay("psa", 3.0) == 0.0
        assert clock.sleeps == []

    def test_back_to_back_calls_are_spaced(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        limiter.respect_delay("psa", 3.0)
        first_done = clock.monotonic()
        limiter.respect_delay("psa", 3.0)
        second_done = clock.monotonic()

        assert second_done - first_done >= 3.0
        assert clock.sleeps == [3.0]

    def test_only_remaining_gap_is_waited(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        limiter.respect_delay("psa", 3.0)
        clock.advance(2.0)

        assert limiter.respect_delay("psa", 3.0) == 1.0

    def test_no_wait_once_gap_has_elapsed(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        limiter.respect_delay("psa", 3.0)
        clock.advance(5.0)

        assert limiter.respect_delay("psa", 3.0) == 0.0

    def test_targets_are_independent(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        limiter.respect_delay("psa", 3.0)

        assert limiter.respect_delay("cgc", 3.0) == 0.0

    def test_negative_delay_never_waits(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        limiter.respect_delay("psa", -1.0)

        assert limiter.respect_delay("psa", -1.0) == 0.0

    def test_reset(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.respect_delay("psa", 3.0)
        limiter.respect_delay("cgc", 3.0)

        limiter.reset("psa")
        assert limiter.last_request_at("psa") is None
        assert limiter.last_request_at("cgc") is not None

        limiter.reset()
        assert limiter.last_request_at("cgc") is None
