"""
tcgsync/domain package marker.
"""

from tcgsync.domain.cards import CardRecord, GradingRecordInput, PriceUpdate
from tcgsync.domain.grading import AuthorityResult, GradeStats, GradingQueryResult
from tcgsync.domain.updates import (
    ManualUpdateOutcome,
    ProgressEvent,
    RunSummary,
    RunTrigger,
    SourceRunResult,
    UpdateRun,
)

__all__ = [
    "AuthorityResult",
    "CardRecord",
    "GradeStats",
    "GradingQueryResult",
    "GradingRecordInput",
    "ManualUpdateOutcome",
    "PriceUpdate",
    "ProgressEvent",
    "RunSummary",
    "RunTrigger",
    "SourceRunResult",
    "UpdateRun",
]
