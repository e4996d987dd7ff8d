"""
tcgsync/api/routers/grading.py

Multi-authority grading population endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tcgsync.api.dependencies import get_auto_update_service
from tcgsync.errors import AggregationError, PolicyDeniedError
from tcgsync.scheduler.service import AutoUpdateService
from tcgsync.schemas.grading import GradingDistributionResponse

router = APIRouter(prefix="/grading", tags=["grading"])


@router.get("/distribution", response_model=GradingDistributionResponse)
def get_distribution(
    card_name: str = Query(..., min_length=1),
    card_series: str = Query(default=""),
    card_number: str = Query(default=""),
    authorities: list[str] | None = Query(default=None, description="psa, cgc, ars; defaults to all"),
    use_cache: bool = Query(default=True),
    force_refresh: bool = Query(default=False),
    allow_partial: bool = Query(default=False),
    service: AutoUpdateService = Depends(get_auto_update_service),
) -> GradingDistributionResponse:
    try:
        result = service.get_grading_distribution(
            card_name,
            card_series,
            card_number,
            authorities,
            use_cache=use_cache,
            force_refresh=force_refresh,
            allow_partial=allow_partial,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PolicyDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except AggregationError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "failures": exc.failures},
        ) from exc

    return GradingDistributionResponse(**result.to_dict())
