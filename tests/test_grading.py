"""
tests/test_grading.py

Pytest unit tests for authority parsers and the multi-authority aggregator.

Coverage
--------
- PSA and CGC population page parsing, grade boundaries
- Weighted aggregation, including authorities that only report averages
- Per-authority failure isolation (policy, network, parse)
- All-failed handling with and without partial results
- Result cache hits, refresh and cache key normalisation
- Progress events per authority
"""

from __future__ import annotations

import pytest

from tcgsync.crawling.cache import ResultCache
from tcgsync.crawling.http import PoliteHttpClient
from tcgsync.crawling.rate_limiter import RateLimiter
from tcgsync.crawling.robots import RobotsPolicyEngine
from tcgsync.domain.grading import POLICY_DENIED, AuthorityResult, GradeStats
from tcgsync.domain.updates import ProgressEvent
from tcgsync.errors import AggregationError, ParseError, PolicyDeniedError
from tcgsync.grading.aggregator import MultiAuthorityAggregator, aggregate_stats, build_cache_key
from tcgsync.grading.authorities import HALF_GRADES, Authority, get_profile
from tcgsync.grading.parsers import RegexResponseParser
from tcgsync.progress import ProgressStream
from tcgsync.storage.memory import InMemoryKeyValueStore
from tests.fakes import FakeClock, FakeResponse, FakeSession, connection_error

PSA_PAGE = """
<html><body>
  <h1>Population Report</h1>
  <div class="summary">Total Graded: 1,234</div>
  <ul>
    <li>Grade 10: 200</li>
    <li>Grade 9: 1,000</li>
    <li>Grade 1: 34</li>
  </ul>
</body></html>
"""

CGC_PAGE = """
<table>
  <tr><td>Total Population:</td><td>50</td></tr>
  <tr><td>Grade 10</td><td>30</td></tr>
  <tr><td>Grade 9.5</td><td>20</td></tr>
</table>
"""

ARS_PAGE = "<p>Total Cards: 12</p><p>Grade 8: 12</p>"

PSA_URL = "https://www.psacard.com/pop"
CGC_URL = "https://www.cgccards.com/pop-report"
ARS_URL = "https://www.arsgrading.com/population-report"


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


class TestRegexResponseParser:
    def test_psa_page(self) -> None:
        stats = RegexResponseParser(get_profile("psa")).parse(PSA_PAGE)

        assert stats.total_graded == 1234
        assert stats.grade_distribution == {"10": 200, "9": 1000, "1": 34}
        assert stats.highest_grade == 10.0
        assert stats.lowest_grade == 1.0
        assert stats.average_grade == pytest.approx(11034 / 1234)

    def test_cgc_half_grades_do_not_bleed(self) -> None:
        stats = RegexResponseParser(get_profile(Authority.CGC)).parse(CGC_PAGE)

        assert stats.total_graded == 50
        assert stats.grade_distribution == {"10": 30, "9.5": 20}
        assert stats.average_grade == pytest.approx((10 * 30 + 9.5 * 20) / 50)

    def test_page_without_data_raises(self) -> None:
        with pytest.raises(ParseError):
            RegexResponseParser(get_profile("ars")).parse("<p>No results found</p>")

    def test_half_grade_labels(self) -> None:
        assert HALF_GRADES[:3] == ("10", "9.5", "9")
        assert HALF_GRADES[-1] == "0.5"

    def test_unknown_authority(self) -> None:
        with pytest.raises(ValueError):
            Authority.parse("bgs")


# ---------------------------------------------------------------------------
# aggregate_stats
# ---------------------------------------------------------------------------


class TestAggregateStats:
    def test_totals_and_average_from_summary_only_authorities(self) -> None:
        results = {
            "psa": AuthorityResult(
                authority="psa",
                success=True,
                stats=GradeStats(total_graded=100, average_grade=8.0, highest_grade=10, lowest_grade=5),
            ),
            "cgc": AuthorityResult(
                authority="cgc",
                success=True,
                stats=GradeStats(total_graded=50, average_grade=9.0, highest_grade=10, lowest_grade=7),
            ),
        }

        overall = aggregate_stats(results)

        assert overall.total_graded == 150
        assert overall.average_grade == pytest.approx(8.333, abs=1e-3)
        assert overall.highest_grade == 10
        assert overall.lowest_grade == 5

    def test_distributions_are_merged(self) -> None:
        results = {
            "psa": AuthorityResult(
                authority="psa",
                success=True,
                stats=GradeStats.from_distribution({"10": 2, "9": 2}),
            ),
            "cgc": AuthorityResult(
                authority="cgc",
                success=True,
                stats=GradeStats.from_distribution({"10": 1, "8": 1}),
            ),
        }

        overall = aggregate_stats(results)

        assert overall.grade_distribution == {"10": 3, "9": 2, "8": 1}
        assert overall.total_graded == 6
        assert overall.average_grade == pytest.approx((30 + 18 + 8) / 6)
        assert overall.lowest_grade == 8.0

    def test_failed_authorities_are_ignored(self) -> None:
        results = {
            "psa": AuthorityResult(authority="psa", success=False, error="boom"),
        }

        assert aggregate_stats(results) == GradeStats()


# ---------------------------------------------------------------------------
# MultiAuthorityAggregator
# ---------------------------------------------------------------------------


def _aggregator(
    session: FakeSession,
    clock: FakeClock,
    *,
    progress: ProgressStream | None = None,
) -> MultiAuthorityAggregator:
    robots = RobotsPolicyEngine(session=session, user_agent="TCGSyncBot/1.0", clock=clock)  # type: ignore[arg-type]
    client = PoliteHttpClient(
        session=session,  # type: ignore[arg-type]
        robots=robots,
        rate_limiter=RateLimiter(clock=clock),
        user_agent="TCGSyncBot/1.0",
    )
    cache = ResultCache(
        store=InMemoryKeyValueStore(),
        namespace="grading_cache",
        default_ttl_seconds=3600,
        clock=clock,
    )
    return MultiAuthorityAggregator(
        client=client,
        cache=cache,
        cache_ttl_seconds=3600,
        progress=progress,
        clock=clock,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


class TestMultiAuthorityAggregator:
    def test_all_authorities_succeed(self, clock: FakeClock) -> None:
        session = FakeSession(
            {
                PSA_URL: FakeResponse(text=PSA_PAGE),
                CGC_URL: FakeResponse(text=CGC_PAGE),
                ARS_URL: FakeResponse(text=ARS_PAGE),
            }
        )

        result = _aggregator(session, clock).get_distribution("Charizard", "Base Set", "4")

        assert result.successful_authorities == ["psa", "cgc", "ars"]
        assert result.overall_stats.total_graded == 1234 + 50 + 12
        assert result.authorities["ars"].stats.grade_distribution == {"8": 12}
        assert result.last_updated == clock.now()

    def test_query_params_are_sent(self, clock: FakeClock) -> None:
        session = FakeSession({PSA_URL: FakeResponse(text=PSA_PAGE)})

        _aggregator(session, clock).get_distribution("Charizard", "Base Set", "4", ["psa"])

        requested = [url for url in session.urls() if url.startswith(PSA_URL)]
        assert requested == [f"{PSA_URL}?card=Charizard&set=Base+Set&number=4"]

    def test_one_failure_does_not_hide_others(self, clock: FakeClock) -> None:
        session = FakeSession(
            {
                PSA_URL: FakeResponse(text=PSA_PAGE),
                CGC_URL: connection_error(),
                ARS_URL: FakeResponse(text="<p>maintenance</p>"),
            }
        )

        result = _aggregator(session, clock).get_distribution("Charizard")

        assert result.authorities["psa"].success is True
        assert result.authorities["cgc"].reason == "network-error"
        assert result.authorities["ars"].reason == "parse-error"
        assert result.overall_stats.total_graded == 1234

    def test_robots_denial_marks_authority_skipped(self, clock: FakeClock) -> None:
        session = FakeSession(
            {
                "https://www.cgccards.com/robots.txt": FakeResponse(text="User-agent: *\nDisallow: /pop-report"),
                PSA_URL: FakeResponse(text=PSA_PAGE),
            }
        )

        result = _aggregator(session, clock).get_distribution("Charizard", authorities=["psa", "cgc"])

        cgc = result.authorities["cgc"]
        assert cgc.skipped is True
        assert cgc.reason == POLICY_DENIED
        assert not any(url.startswith(CGC_URL) for url in session.urls())

    def test_all_denied_raises_policy_denied(self, clock: FakeClock) -> None:
        session = FakeSession(
            {"https://www.psacard.com/robots.txt": FakeResponse(text="User-agent: *\nDisallow: /pop")}
        )

        with pytest.raises(PolicyDeniedError):
            _aggregator(session, clock).get_distribution("Charizard", authorities=["psa"])

    def test_all_failed_raises_aggregation_error(self, clock: FakeClock) -> None:
        session = FakeSession({PSA_URL: FakeResponse(status_code=500), CGC_URL: connection_error()})

        with pytest.raises(AggregationError) as exc_info:
            _aggregator(session, clock).get_distribution("Charizard", authorities=["psa", "cgc"])

        assert set(exc_info.value.failures) == {"psa", "cgc"}

    def test_allow_partial_returns_empty_result(self, clock: FakeClock) -> None:
        session = FakeSession({PSA_URL: FakeResponse(status_code=500)})

        result = _aggregator(session, clock).get_distribution(
            "Charizard",
            authorities=["psa"],
            allow_partial=True,
        )

        assert result.has_any_success is False
        assert result.overall_stats.total_graded == 0

    def test_results_are_cached(self, clock: FakeClock) -> None:
        session = FakeSession({PSA_URL: FakeResponse(text=PSA_PAGE)})
        aggregator = _aggregator(session, clock)

        first = aggregator.get_distribution("Charizard", authorities=["psa"])
        second = aggregator.get_distribution("Charizard", authorities=["psa"])

        assert second.to_dict() == first.to_dict()
        assert aggregator.cache_hits == 1
        assert aggregator.cache_misses == 1
        assert len([url for url in session.urls() if url.startswith(PSA_URL)]) == 1

    def test_force_refresh_bypasses_cache(self, clock: FakeClock) -> None:
        session = FakeSession({PSA_URL: FakeResponse(text=PSA_PAGE)})
        aggregator = _aggregator(session, clock)

        aggregator.get_distribution("Charizard", authorities=["psa"])
        aggregator.get_distribution("Charizard", authorities=["psa"], force_refresh=True)

        assert len([url for url in session.urls() if url.startswith(PSA_URL)]) == 2

    def test_all_failed_partial_result_is_cached(self, clock: FakeClock) -> None:
        session = FakeSession({PSA_URL: FakeResponse(status_code=500)})
        aggregator = _aggregator(session, clock)

        first = aggregator.get_distribution("Charizard", authorities=["psa"], allow_partial=True)
        second = aggregator.get_distribution("Charizard", authorities=["psa"], allow_partial=True)

        assert aggregator.describe()["cache_size"] == 1
        assert second.authorities["psa"].reason == first.authorities["psa"].reason
        assert len([url for url in session.urls() if url.startswith(PSA_URL)]) == 1

    def test_progress_event_per_authority(self, clock: FakeClock) -> None:
        session = FakeSession({PSA_URL: FakeResponse(text=PSA_PAGE), CGC_URL: FakeResponse(text=CGC_PAGE)})
        progress = ProgressStream()
        events: list[ProgressEvent] = []
        progress.subscribe(events.append)

        _aggregator(session, clock, progress=progress).get_distribution(
            "Charizard",
            authorities=["psa", "cgc"],
        )

        assert [(event.step, event.source, event.percent) for event in events] == [
            ("fetching", "psa", 0.0),
            ("fetching", "cgc", 50.0),
        ]

    def test_unknown_authority_is_rejected(self, clock: FakeClock) -> None:
        with pytest.raises(ValueError):
            _aggregator(FakeSession(), clock).get_distribution("Charizard", authorities=["bgs"])


class TestBuildCacheKey:
    def test_normalised_and_order_independent(self) -> None:
        first = build_cache_key("Charizard EX", "Base Set", "4/102", ["psa", "cgc"])
        second = build_cache_key("Charizard EX", "Base Set", "4/102", ["cgc", "psa"])

        assert first == second
        assert first == "grading_data_charizard_ex_base_set_4_102_cgc_psa"
