"""
tcgsync/domain/grading.py

Grade distribution records produced by the multi-authority aggregator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from tcgsync.domain.timestamps import parse_iso_datetime, to_iso

POLICY_DENIED = "policy-denied"
NETWORK_ERROR = "network-error"
PARSE_ERROR = "parse-error"


@dataclass(frozen=True)
class GradeStats:
    """
    Population statistics for one authority or the aggregate.
    """

    total_graded: int = 0
    grade_distribution: dict[str, int] = field(default_factory=dict)
    average_grade: float = 0.0
    highest_grade: float = 0.0
    lowest_grade: float = 0.0

    @classmethod
    def from_distribution(
        cls,
        distribution: Mapping[str, int],
        *,
        total_graded: int | None = None,
    ) -> "GradeStats":
        """
        Build stats where average, highest and lowest only consider buckets
        with a positive count.
        """

        populated = {grade: count for grade, count in distribution.items() if count > 0}
        counted = sum(populated.values())
        weighted = sum(float(grade) * count for grade, count in populated.items())
        grades = [float(grade) for grade in populated]
        return cls(
            total_graded=counted if total_graded is None else total_graded,
            grade_distribution=dict(distribution),
            average_grade=weighted / counted if counted else 0.0,
            highest_grade=max(grades) if grades else 0.0,
            lowest_grade=min(grades) if grades else 0.0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_graded": self.total_graded,
            "grade_distribution": dict(self.grade_distribution),
            "average_grade": self.average_grade,
            "highest_grade": self.highest_grade,
            "lowest_grade": self.lowest_grade,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GradeStats":
        return cls(
            total_graded=int(payload.get("total_graded", 0)),
            grade_distribution={
                str(grade): int(count)
                for grade, count in (payload.get("grade_distribution") or {}).items()
            },
            average_grade=float(payload.get("average_grade", 0.0)),
            highest_grade=float(payload.get("highest_grade", 0.0)),
            lowest_grade=float(payload.get("lowest_grade", 0.0)),
        )


@dataclass(frozen=True)
class AuthorityResult:
    """
    Outcome of querying one grading authority.
    """

    authority: str
    success: bool
    skipped: bool = False
    reason: str | None = None
    error: str | None = None
    stats: GradeStats | None = None
    source_url: str | None = None
    fetched_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "authority": self.authority,
            "success": self.success,
            "skipped": self.skipped,
            "reason": self.reason,
            "error": self.error,
            "stats": self.stats.to_dict() if self.stats is not None else None,
            "source_url": self.source_url,
            "fetched_at": to_iso(self.fetched_at),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AuthorityResult":
        stats = payload.get("stats")
        return cls(
            authority=str(payload["authority"]),
            success=bool(payload.get("success", False)),
            skipped=bool(payload.get("skipped", False)),
            reason=payload.get("reason"),
            error=payload.get("error"),
            stats=GradeStats.from_dict(stats) if stats else None,
            source_url=payload.get("source_url"),
            fetched_at=parse_iso_datetime(payload.get("fetched_at")),
        )


@dataclass(frozen=True)
class GradingQueryResult:
    """
    Per-authority and aggregate population data for one card.
    """

    card_name: str
    card_series: str
    card_number: str
    authorities: dict[str, AuthorityResult]
    overall_stats: GradeStats
    last_updated: datetime

    @property
    def successful_authorities(self) -> list[str]:
        return [name for name, result in self.authorities.items() if result.success]

    @property
    def has_any_success(self) -> bool:
        return bool(self.successful_authorities)

    def to_dict(self) -> dict[str, Any]:
        return {
            "card_name": self.card_name,
            "card_series": self.card_series,
            "card_number": self.card_number,
            "authorities": {name: result.to_dict() for name, result in self.authorities.items()},
            "overall_stats": self.overall_stats.to_dict(),
            "last_updated": to_iso(self.last_updated),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GradingQueryResult":
        return cls(
            card_name=str(payload.get("card_name", "")),
            card_series=str(payload.get("card_series", "")),
            card_number=str(payload.get("card_number", "")),
            authorities={
                str(name): AuthorityResult.from_dict(result)
                for name, result in (payload.get("authorities") or {}).items()
            },
            overall_stats=GradeStats.from_dict(payload.get("overall_stats") or {}),
            last_updated=parse_iso_datetime(payload.get("last_updated")),
        )
