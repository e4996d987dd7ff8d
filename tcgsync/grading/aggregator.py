"""
Multi-authority grading population aggregation.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from tcgsync.clock import Clock, SystemClock
from tcgsync.crawling.cache import ResultCache
from tcgsync.crawling.http import PoliteHttpClient, build_url
from tcgsync.domain.grading import (
    NETWORK_ERROR,
    PARSE_ERROR,
    POLICY_DENIED,
    AuthorityResult,
    GradeStats,
    GradingQueryResult,
)
from tcgsync.errors import AggregationError, NetworkError, ParseError, PolicyDeniedError
from tcgsync.grading.authorities import AUTHORITY_PROFILES, Authority, AuthorityProfile
from tcgsync.grading.parsers import RegexResponseParser, ResponseParser
from tcgsync.logging_utils import log_event
from tcgsync.progress import ProgressStream

logger = logging.getLogger(__name__)

DEFAULT_AUTHORITIES = (Authority.PSA, Authority.CGC, Authority.ARS)


def build_cache_key(
    card_name: str,
    card_series: str,
    card_number: str,
    authorities: Iterable[str],
) -> str:
    joined = "_".join(sorted(authorities))
    raw = f"grading_data_{card_name}_{card_series}_{card_number}_{joined}".lower()
    return re.sub(r"[^a-z0-9]", "_", raw)


def search_params(card_name: str, card_series: str, card_number: str) -> dict[str, str]:
    return {
        "card": card_name.strip(),
        "set": card_series.strip(),
        "number": card_number.strip(),
    }


def aggregate_stats(results: Mapping[str, AuthorityResult]) -> GradeStats:
    """
    Merge successful authority stats into one overall record.

    The average is weighted by bucket counts; an authority that only
    reported a total and an average contributes `average * total`.
    """

    total_graded = 0
    distribution: dict[str, int] = {}
    weighted_sum = 0.0
    weight = 0
    fallback_grades: list[float] = []

    for result in results.values():
        if not result.success or result.stats is None:
            continue
        stats = result.stats
        total_graded += stats.total_graded

        populated = {grade: count for grade, count in stats.grade_distribution.items() if count > 0}
        for grade, count in stats.grade_distribution.items():
            distribution[grade] = distribution.get(grade, 0) + count

        if populated:
            weighted_sum += sum(float(grade) * count for grade, count in populated.items())
            weight += sum(populated.values())
        elif stats.total_graded > 0 and stats.average_grade > 0:
            weighted_sum += stats.average_grade * stats.total_graded
            weight += stats.total_graded
            fallback_grades.extend([stats.highest_grade, stats.lowest_grade])

    grades = [float(grade) for grade, count in distribution.items() if count > 0]
    grades.extend(grade for grade in fallback_grades if grade > 0)

    return GradeStats(
        total_graded=total_graded,
        grade_distribution=distribution,
        average_grade=weighted_sum / weight if weight else 0.0,
        highest_grade=max(grades) if grades else 0.0,
        lowest_grade=min(grades) if grades else 0.0,
    )


class MultiAuthorityAggregator:
    """
    Queries each grading authority independently and merges the results.
    """

    def __init__(
        self,
        *,
        client: PoliteHttpClient,
        cache: ResultCache,
        cache_ttl_seconds: float = 24 * 60 * 60,
        profiles: Mapping[Authority, AuthorityProfile] | None = None,
        parsers: Mapping[Authority, ResponseParser] | None = None,
        progress: ProgressStream | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds
        self._profiles = dict(profiles or AUTHORITY_PROFILES)
        self._parsers: dict[Authority, ResponseParser] = {
            authority: RegexResponseParser(profile) for authority, profile in self._profiles.items()
        }
        self._parsers.update(parsers or {})
        self._progress = progress or ProgressStream()
        self._clock = clock or SystemClock()
        self.cache_hits = 0
        self.cache_misses = 0

    @property
    def supported_authorities(self) -> list[str]:
        return [authority.value for authority in self._profiles]

    def get_distribution(
        self,
        card_name: str,
        card_series: str = "",
        card_number: str = "",
        authorities: Iterable[str | Authority] | None = None,
        *,
        use_cache: bool = True,
        force_refresh: bool = False,
        allow_partial: bool = False,
    ) -> GradingQueryResult:
        """
        Return per-authority and overall population data for one card.
        """

        selected = self._resolve_authorities(authorities)
        cache_key = build_cache_key(
            card_name,
            card_series,
            card_number,
            (authority.value for authority in selected),
        )

        if use_cache and not force_refresh:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self.cache_hits += 1
                log_event(logger, logging.INFO, "grading_cache_hit", cache_key=cache_key)
                return GradingQueryResult.from_dict(cached)
            self.cache_misses += 1

        results: dict[str, AuthorityResult] = {}
        for index, authority in enumerate(selected):
            self._progress.emit(
                "fetching",
                source=authority.value,
                percent=round(index / len(selected) * 100, 2),
                detail=card_name,
            )
            results[authority.value] = self._query_authority(
                authority,
                card_name,
                card_series,
                card_number,
            )

        query_result = GradingQueryResult(
            card_name=card_name,
            card_series=card_series,
            card_number=card_number,
            authorities=results,
            overall_stats=aggregate_stats(results),
            last_updated=self._clock.now(),
        )

        if not query_result.has_any_success:
            failures = {name: result.error or result.reason or "" for name, result in results.items()}
            log_event(
                logger,
                logging.WARNING,
                "grading_all_authorities_failed",
                card_name=card_name,
                failures=failures,
            )
            if not allow_partial:
                if all(result.reason == POLICY_DENIED for result in results.values()):
                    raise PolicyDeniedError(
                        f"robots.txt denied every authority for card={card_name}",
                    )
                raise AggregationError(
                    f"Every grading authority failed for card={card_name}",
                    failures=failures,
                )

        if use_cache:
            self._cache.set(cache_key, query_result.to_dict(), self._cache_ttl_seconds)

        log_event(
            logger,
            logging.INFO,
            "grading_query_completed",
            card_name=card_name,
            authorities=[authority.value for authority in selected],
            successful=query_result.successful_authorities,
            total_graded=query_result.overall_stats.total_graded,
        )
        return query_result

    def _resolve_authorities(
        self,
        authorities: Iterable[str | Authority] | None,
    ) -> list[Authority]:
        requested = DEFAULT_AUTHORITIES if authorities is None else authorities
        resolved: list[Authority] = []
        for value in requested:
            authority = Authority.parse(value)
            if authority not in self._profiles:
                raise ValueError(f"No profile configured for authority '{authority.value}'")
            if authority not in resolved:
                resolved.append(authority)
        if not resolved:
            raise ValueError("At least one grading authority is required")
        return resolved

    def _query_authority(
        self,
        authority: Authority,
        card_name: str,
        card_series: str,
        card_number: str,
    ) -> AuthorityResult:
        profile = self._profiles[authority]
        params = search_params(card_name, card_series, card_number)
        source_url = build_url(profile.search_url, params)

        try:
            response = self._client.get(
                profile.search_url,
                target_key=f"grading:{authority.value}",
                params=params,
                min_delay_seconds=profile.crawl_delay_seconds,
            )
            stats = self._parsers[authority].parse(response.text)
        except PolicyDeniedError as exc:
            return self._failure(authority, source_url, POLICY_DENIED, exc, skipped=True)
        except NetworkError as exc:
            return self._failure(authority, source_url, NETWORK_ERROR, exc)
        except ParseError as exc:
            return self._failure(authority, source_url, PARSE_ERROR, exc)

        log_event(
            logger,
            logging.INFO,
            "authority_query_succeeded",
            authority=authority.value,
            source_url=source_url,
            total_graded=stats.total_graded,
        )
        return AuthorityResult(
            authority=authority.value,
            success=True,
            stats=stats,
            source_url=source_url,
            fetched_at=self._clock.now(),
        )

    def _failure(
        self,
        authority: Authority,
        source_url: str,
        reason: str,
        exc: Exception,
        *,
        skipped: bool = False,
    ) -> AuthorityResult:
        log_event(
            logger,
            logging.WARNING,
            "authority_query_failed",
            authority=authority.value,
            source_url=source_url,
            reason=reason,
            error=str(exc),
        )
        return AuthorityResult(
            authority=authority.value,
            success=False,
            skipped=skipped,
            reason=reason,
            error=str(exc),
            source_url=source_url,
            fetched_at=self._clock.now(),
        )

    def describe(self) -> dict[str, Any]:
        return {
            "authorities": self.supported_authorities,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_size": self._cache.size(),
        }
