"""
Grading authority strategy table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Authority(str, Enum):
    PSA = "psa"
    CGC = "cgc"
    ARS = "ars"

    @classmethod
    def parse(cls, value: str | "Authority") -> "Authority":
        if isinstance(value, Authority):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown grading authority '{value}'") from exc


WHOLE_GRADES = tuple(str(grade) for grade in range(10, 0, -1))
HALF_GRADES = tuple(
    str(int(step / 2)) if step % 2 == 0 else str(step / 2)
    for step in range(20, 0, -1)
)


@dataclass(frozen=True)
class AuthorityProfile:
    """
    Endpoint and parsing rules for one grading authority.

    `grade_line_pattern` holds a `{grade}` placeholder that the parser
    replaces with each grade label in `grades`.
    """

    authority: Authority
    name: str
    base_url: str
    search_url: str
    total_graded_pattern: str
    grade_line_pattern: str
    grades: tuple[str, ...]
    crawl_delay_seconds: float


AUTHORITY_PROFILES: dict[Authority, AuthorityProfile] = {
    Authority.PSA: AuthorityProfile(
        authority=Authority.PSA,
        name="PSA (Professional Sports Authenticator)",
        base_url="https://www.psacard.com",
        search_url="https://www.psacard.com/pop",
        total_graded_pattern=r"Total\s+Graded[:\s]*([0-9,]+)",
        grade_line_pattern=r"Grade\s+{grade}[:\s]*([0-9,]+)",
        grades=WHOLE_GRADES,
        crawl_delay_seconds=3.0,
    ),
    Authority.CGC: AuthorityProfile(
        authority=Authority.CGC,
        name="CGC (Certified Guaranty Company)",
        base_url="https://www.cgccards.com",
        search_url="https://www.cgccards.com/pop-report",
        total_graded_pattern=r"Total\s+Population[:\s]*([0-9,]+)",
        grade_line_pattern=r"(?:Grade\s+)?{grade}[:\s]+([0-9,]+)",
        grades=HALF_GRADES,
        crawl_delay_seconds=2.0,
    ),
    Authority.ARS: AuthorityProfile(
        authority=Authority.ARS,
        name="ARS (Authentic Rarities & Services)",
        base_url="https://www.arsgrading.com",
        search_url="https://www.arsgrading.com/population-report",
        total_graded_pattern=r"Total\s+Cards[:\s]*([0-9,]+)",
        grade_line_pattern=r"Grade\s+{grade}[:\s]*([0-9,]+)",
        grades=HALF_GRADES,
        crawl_delay_seconds=2.0,
    ),
}


def get_profile(authority: str | Authority) -> AuthorityProfile:
    return AUTHORITY_PROFILES[Authority.parse(authority)]
