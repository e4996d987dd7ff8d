"""
tests/test_http_client.py

PoliteHttpClient ordering (robots, delay, GET), error mapping and the
connectivity probe.
"""

from __future__ import annotations

import pytest

from tcgsync.crawling.http import ConnectivityProbe, PoliteHttpClient, build_url
from tcgsync.crawling.rate_limiter import RateLimiter
from tcgsync.crawling.robots import RobotsPolicyEngine
from tcgsync.errors import ConnectivityError, NetworkError, ParseError, PolicyDeniedError
from tests.fakes import FakeClock, FakeResponse, FakeSession, connection_error

AGENT = "TCGSyncBot/1.0"
ROBOTS_URL = "https://api.example.com/robots.txt"
PRICES_URL = "https://api.example.com/prices"


def _client(session: FakeSession, clock: FakeClock) -> PoliteHttpClient:
    robots = RobotsPolicyEngine(session=session, user_agent=AGENT, clock=clock)  # type: ignore[arg-type]
    return PoliteHttpClient(
        session=session,  # type: ignore[arg-type]
        robots=robots,
        rate_limiter=RateLimiter(clock=clock),
        user_agent=AGENT,
        max_redirects=3,
    )


class TestBuildUrl:
    def test_drops_empty_params(self) -> None:
        url = build_url(PRICES_URL, {"card": "Charizard", "set": "", "number": None})
        assert url == f"{PRICES_URL}?card=Charizard"

    def test_without_params(self) -> None:
        assert build_url(PRICES_URL) == PRICES_URL


class TestPoliteHttpClient:
    def test_get_applies_headers_and_redirect_cap(self) -> None:
        session = FakeSession({PRICES_URL: FakeResponse(json_body={"price": 12.5})})
        client = _client(session, FakeClock())

        assert client.get_json(PRICES_URL, target_key="pricing") == {"price": 12.5}
        assert session.max_redirects == 3
        _, url, headers = session.calls[-1]
        assert url == PRICES_URL
        assert headers["User-Agent"] == AGENT
        assert "Accept-Language" in headers

    def test_robots_denial_blocks_request(self) -> None:
        session = FakeSession(
            {
                ROBOTS_URL: FakeResponse(text="User-agent: *\nDisallow: /prices"),
                PRICES_URL: FakeResponse(json_body={"price": 1}),
            }
        )
        client = _client(session, FakeClock())

        with pytest.raises(PolicyDeniedError):
            client.get(PRICES_URL, target_key="pricing")

        assert session.urls() == [ROBOTS_URL]
        assert client.stats().robots_blocked == 1
        assert client.stats().total_requests == 0

    def test_crawl_delay_spaces_requests(self) -> None:
        clock = FakeClock()
        session = FakeSession(
            {
                ROBOTS_URL: FakeResponse(text="User-agent: *\nCrawl-delay: 4"),
                PRICES_URL: FakeResponse(json_body={}),
            }
        )
        client = _client(session, clock)

        client.get(PRICES_URL, target_key="pricing")
        client.get(PRICES_URL, target_key="pricing")

        assert clock.sleeps == [4.0]

    def test_min_delay_overrides_shorter_crawl_delay(self) -> None:
        clock = FakeClock()
        session = FakeSession({PRICES_URL: FakeResponse(json_body={})})
        client = _client(session, clock)

        client.get(PRICES_URL, target_key="grading:psa", min_delay_seconds=3.0)
        client.get(PRICES_URL, target_key="grading:psa", min_delay_seconds=3.0)

        assert clock.sleeps == [3.0]

    def test_http_error_maps_to_network_error(self) -> None:
        session = FakeSession({PRICES_URL: FakeResponse(status_code=500)})
        client = _client(session, FakeClock())

        with pytest.raises(NetworkError) as exc_info:
            client.get(PRICES_URL, target_key="pricing")

        assert exc_info.value.status_code == 500
        assert client.stats().failed_requests == 1

    def test_transport_error_maps_to_network_error(self) -> None:
        session = FakeSession({PRICES_URL: connection_error("timed out")})
        client = _client(session, FakeClock())

        with pytest.raises(NetworkError, match="timed out"):
            client.get(PRICES_URL, target_key="pricing")

    def test_non_json_body_is_parse_error(self) -> None:
        session = FakeSession({PRICES_URL: FakeResponse(text="<html>maintenance</html>")})
        client = _client(session, FakeClock())

        with pytest.raises(ParseError):
            client.get_json(PRICES_URL, target_key="pricing")

    def test_stats_count_successes(self) -> None:
        session = FakeSession({PRICES_URL: FakeResponse(json_body={})})
        client = _client(session, FakeClock())

        client.get(PRICES_URL, target_key="pricing")

        assert client.stats().to_dict() == {
            "total_requests": 1,
            "successful_requests": 1,
            "failed_requests": 0,
            "robots_blocked": 0,
        }


class TestConnectivityProbe:
    def test_ok(self) -> None:
        session = FakeSession({"https://probe.example.com": FakeResponse()})
        ConnectivityProbe(session=session, url="https://probe.example.com").check()  # type: ignore[arg-type]
        assert session.urls("HEAD") == ["https://probe.example.com"]

    def test_transport_failure(self) -> None:
        session = FakeSession({"https://probe.example.com": connection_error()})
        probe = ConnectivityProbe(session=session, url="https://probe.example.com")  # type: ignore[arg-type]

        with pytest.raises(ConnectivityError):
            probe.check()

    def test_error_status(self) -> None:
        probe = ConnectivityProbe(session=FakeSession(), url="https://probe.example.com")  # type: ignore[arg-type]

        with pytest.raises(ConnectivityError):
            probe.check()
