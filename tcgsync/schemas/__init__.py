"""
tcgsync/schemas package marker.
"""

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
from tcgsync.schemas.grading import GradingDistributionResponse

__all__ = [
    "AutoUpdateSettingsResponse",
    "EnableAutoUpdateRequest",
    "GradingDistributionResponse",
    "ManualUpdateRequest",
    "ManualUpdateResponse",
    "ServiceStatusResponse",
    "SourceStatusResponse",
    "SourceUpdateRequest",
    "UpdateRunResponse",
    "UpdateTimeRequest",
]
