"""
tcgsync/api/routers/auto_update.py

Auto-update schedule, data source and manual run endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tcgsync.api.dependencies import get_auto_update_service
from tcgsync.errors import SourceNotFoundError
from tcgsync.scheduler.service import AutoUpdateService
from tcgsync.scheduler.state import AutoUpdateSettings
from tcgsync.schemas.auto_update import (
    AutoUpdateSettingsResponse,
    EnableAutoUpdateRequest,
    ManualUpdateRequest,
    ManualUpdateResponse,
    ServiceStatusResponse,
    SourceStatusResponse,
    SourceUpdateRequest,
    UpdateRunResponse,
    UpdateTimeRequest,
)

router = APIRouter(prefix="/auto-update", tags=["auto-update"])


def _settings_response(settings: AutoUpdateSettings) -> AutoUpdateSettingsResponse:
    return AutoUpdateSettingsResponse(enabled=settings.enabled, update_time=settings.update_time)


@router.get("/status", response_model=ServiceStatusResponse)
def get_status(
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> ServiceStatusResponse:
    return ServiceStatusResponse(**service.get_service_status())


@router.post("/enable", response_model=AutoUpdateSettingsResponse)
def enable_auto_update(
    payload: EnableAutoUpdateRequest | None = None,
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> AutoUpdateSettingsResponse:
    try:
        settings = service.enable_auto_update(payload.update_time if payload else None)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _settings_response(settings)


@router.post("/disable", response_model=AutoUpdateSettingsResponse)
def disable_auto_update(
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> AutoUpdateSettingsResponse:
    return _settings_response(service.disable_auto_update())


@router.put("/time", response_model=AutoUpdateSettingsResponse)
def set_update_time(
    payload: UpdateTimeRequest,
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> AutoUpdateSettingsResponse:
    try:
        settings = service.set_update_time(payload.update_time)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _settings_response(settings)


@router.get("/history", response_model=list[UpdateRunResponse])
def get_history(
    limit: int = Query(default=50, ge=1, le=100, description="Newest runs first"),
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> list[UpdateRunResponse]:
    return [UpdateRunResponse(**run.to_dict()) for run in service.get_update_history(limit)]


@router.get("/sources", response_model=dict[str, list[SourceStatusResponse]])
def get_sources(
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> dict[str, list[SourceStatusResponse]]:
    return {
        source_type: [SourceStatusResponse(**source) for source in sources]
        for source_type, sources in service.get_data_source_status().items()
    }


@router.patch("/sources/{source_key}", response_model=SourceStatusResponse)
def update_source(
    source_key: str,
    payload: SourceUpdateRequest,
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> SourceStatusResponse:
    """
    Enable/disable a source and/or change its update interval.
    """

    if payload.enabled is None and payload.update_interval_hours is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide 'enabled' and/or 'update_interval_hours'.",
        )

    try:
        source = None
        if payload.enabled is not None:
            source = service.toggle_data_source(source_key, payload.enabled)
        if payload.update_interval_hours is not None:
            source = service.set_source_update_interval(source_key, payload.update_interval_hours)
    except SourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return SourceStatusResponse(**source.to_dict())


@router.post("/run", response_model=ManualUpdateResponse)
def run_manual_update(
    payload: ManualUpdateRequest | None = None,
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> ManualUpdateResponse:
    """
    Run all due sources, or only the listed ones regardless of schedule.
    """

    try:
        outcome = service.trigger_manual_update(payload.sources if payload else None)
    except SourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return ManualUpdateResponse(
        success=outcome.success,
        skipped=outcome.skipped,
        run_id=outcome.run_id,
        error=outcome.error,
        results={key: result.to_dict() for key, result in outcome.results.items()},
    )
