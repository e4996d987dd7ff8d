"""
Population page parsers keyed by grading authority.
"""

from __future__ import annotations

import re
from typing import Protocol

from bs4 import BeautifulSoup

from tcgsync.domain.grading import GradeStats
from tcgsync.errors import ParseError
from tcgsync.grading.authorities import AuthorityProfile

GRADE_BOUNDARY_BEFORE = r"(?<![0-9.,])"
GRADE_BOUNDARY_AFTER = r"(?![0-9.,])"


class ResponseParser(Protocol):
    def parse(self, body: str) -> GradeStats:
        """Extract population statistics from a response body."""


def extract_text(body: str) -> str:
    soup = BeautifulSoup(body, "html.parser")
    return " ".join(soup.get_text(" ").split())


def _to_count(raw: str) -> int | None:
    digits = raw.replace(",", "")
    if not digits.isdigit():
        return None
    return int(digits)


class RegexResponseParser:
    """
    Applies an authority's total and per-grade patterns to page text.
    """

    def __init__(self, profile: AuthorityProfile) -> None:
        self.profile = profile
        self._total_pattern = re.compile(profile.total_graded_pattern, re.IGNORECASE)
        self._grade_patterns = {
            grade: re.compile(
                profile.grade_line_pattern.replace(
                    "{grade}",
                    GRADE_BOUNDARY_BEFORE + re.escape(grade) + GRADE_BOUNDARY_AFTER,
                ),
                re.IGNORECASE,
            )
            for grade in profile.grades
        }

    def parse(self, body: str) -> GradeStats:
        text = extract_text(body)

        total_graded: int | None = None
        total_match = self._total_pattern.search(text)
        if total_match:
            total_graded = _to_count(total_match.group(1))

        distribution: dict[str, int] = {}
        for grade, pattern in self._grade_patterns.items():
            grade_match = pattern.search(text)
            if not grade_match:
                continue
            count = _to_count(grade_match.group(1))
            if count is not None:
                distribution[grade] = count

        if total_graded is None and not distribution:
            raise ParseError(f"No population data found for authority={self.profile.authority.value}")

        return GradeStats.from_distribution(distribution, total_graded=total_graded)
