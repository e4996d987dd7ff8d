"""
tcgsync/domain/updates.py

Run records produced by the update orchestrator and kept in bounded history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from tcgsync.domain.timestamps import parse_iso_datetime, to_iso


class RunTrigger:
    SCHEDULED = "scheduled"
    MANUAL = "manual"


@dataclass
class SourceRunResult:
    """
    Outcome for one source within an update run.
    """

    source: str
    type: str
    start_time: datetime
    end_time: datetime | None = None
    success: bool = False
    skipped: bool = False
    error: str | None = None
    units_updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "type": self.type,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "success": self.success,
            "skipped": self.skipped,
            "error": self.error,
            "units_updated": self.units_updated,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SourceRunResult":
        return cls(
            source=str(payload["source"]),
            type=str(payload.get("type", "")),
            start_time=parse_iso_datetime(payload.get("start_time")),
            end_time=parse_iso_datetime(payload.get("end_time")),
            success=bool(payload.get("success", False)),
            skipped=bool(payload.get("skipped", False)),
            error=payload.get("error"),
            units_updated=int(payload.get("units_updated", 0)),
        )


@dataclass(frozen=True)
class RunSummary:
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_results(cls, results: Mapping[str, SourceRunResult]) -> "RunSummary":
        successful = sum(1 for result in results.values() if result.success)
        skipped = sum(1 for result in results.values() if result.skipped)
        return cls(
            total=len(results),
            successful=successful,
            failed=len(results) - successful - skipped,
            skipped=skipped,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass
class UpdateRun:
    """
    One orchestrator execution, including systemic failures.
    """

    run_id: str
    trigger: str
    start_time: datetime
    end_time: datetime | None = None
    results: dict[str, SourceRunResult] = field(default_factory=dict)
    summary: RunSummary = field(default_factory=RunSummary)
    systemic_failure: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "trigger": self.trigger,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "results": {key: result.to_dict() for key, result in self.results.items()},
            "summary": self.summary.to_dict(),
            "systemic_failure": self.systemic_failure,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UpdateRun":
        summary = payload.get("summary") or {}
        return cls(
            run_id=str(payload.get("run_id", "")),
            trigger=str(payload.get("trigger", RunTrigger.SCHEDULED)),
            start_time=parse_iso_datetime(payload.get("start_time")),
            end_time=parse_iso_datetime(payload.get("end_time")),
            results={
                str(key): SourceRunResult.from_dict(result)
                for key, result in (payload.get("results") or {}).items()
            },
            summary=RunSummary(
                total=int(summary.get("total", 0)),
                successful=int(summary.get("successful", 0)),
                failed=int(summary.get("failed", 0)),
                skipped=int(summary.get("skipped", 0)),
            ),
            systemic_failure=bool(payload.get("systemic_failure", False)),
            error=payload.get("error"),
        )


@dataclass(frozen=True)
class ManualUpdateOutcome:
    """
    Result handed back to foreground callers of a manual update.
    """

    success: bool
    results: dict[str, SourceRunResult] = field(default_factory=dict)
    error: str | None = None
    skipped: bool = False
    run_id: str | None = None


@dataclass(frozen=True)
class ProgressEvent:
    """
    Progress notification published while a run or query is in flight.
    """

    step: str
    source: str | None = None
    percent: float = 0.0
    detail: str | None = None
