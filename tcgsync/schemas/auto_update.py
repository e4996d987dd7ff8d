"""
tcgsync/schemas/auto_update.py

Request and response schemas for auto-update operations.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class AutoUpdateSettingsResponse(BaseModel):
    enabled: bool
    update_time: str


class EnableAutoUpdateRequest(BaseModel):
    update_time: str | None = Field(default=None, description="24h HH:MM; defaults to the current time setting")


class UpdateTimeRequest(BaseModel):
    update_time: str = Field(..., description="24h HH:MM")


class SourceUpdateRequest(BaseModel):
    """
    Partial update for one data source.
    """

    enabled: bool | None = None
    update_interval_hours: float | None = Field(default=None, gt=0)


class ManualUpdateRequest(BaseModel):
    sources: list[str] | None = Field(default=None, description="Source keys such as 'pricing.tcgplayer'")


class SourceStatusResponse(BaseModel):
    key: str
    source_key: str
    type: str
    display_name: str
    enabled: bool
    priority: str
    update_interval_hours: float = Field(..., gt=0)
    last_update: datetime | None = None
    status: str
    last_error: str | None = None
    units_updated: int = Field(..., ge=0)


class SourceRunResultResponse(BaseModel):
    source: str
    type: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    success: bool
    skipped: bool
    error: str | None = None
    units_updated: int = Field(..., ge=0)


class RunSummaryResponse(BaseModel):
    total: int = Field(..., ge=0)
    successful: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)


class UpdateRunResponse(BaseModel):
    """
    API response model for one recorded update run.
    """

    run_id: str
    trigger: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    results: dict[str, SourceRunResultResponse] = Field(default_factory=dict)
    summary: RunSummaryResponse
    systemic_failure: bool
    error: str | None = None


class ManualUpdateResponse(BaseModel):
    success: bool
    skipped: bool = False
    run_id: str | None = None
    error: str | None = None
    results: dict[str, SourceRunResultResponse] = Field(default_factory=dict)


class ServiceStatusResponse(BaseModel):
    is_initialized: bool
    is_running: bool
    is_enabled: bool
    update_time: str
    last_update: datetime | None = None
    next_run_time: datetime | None = None
    data_sources: dict[str, list[SourceStatusResponse]]
    update_history: int = Field(..., ge=0)
