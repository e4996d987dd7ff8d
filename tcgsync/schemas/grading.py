"""
tcgsync/schemas/grading.py

Response schemas for grading population queries.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class GradeStatsResponse(BaseModel):
    total_graded: int = Field(..., ge=0)
    grade_distribution: dict[str, int] = Field(default_factory=dict)
    average_grade: float = Field(..., ge=0)
    highest_grade: float = Field(..., ge=0)
    lowest_grade: float = Field(..., ge=0)


class AuthorityResultResponse(BaseModel):
    authority: str
    success: bool
    skipped: bool
    reason: str | None = None
    error: str | None = None
    stats: GradeStatsResponse | None = None
    source_url: str | None = None
    fetched_at: datetime | None = None


class GradingDistributionResponse(BaseModel):
    """
    API response model for a multi-authority grading query.
    """

    card_name: str
    card_series: str
    card_number: str
    authorities: dict[str, AuthorityResultResponse]
    overall_stats: GradeStatsResponse
    last_updated: datetime | None = None
