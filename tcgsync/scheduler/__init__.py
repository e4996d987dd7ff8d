"""
Update scheduling exports.
"""

from tcgsync.scheduler.orchestrator import CrawlOrchestrator
from tcgsync.scheduler.service import AUTO_UPDATE_JOB_ID, AutoUpdateService
from tcgsync.scheduler.state import AutoUpdateSettings, SettingsStore, UpdateHistory, parse_update_time

__all__ = [
    "AUTO_UPDATE_JOB_ID",
    "AutoUpdateService",
    "AutoUpdateSettings",
    "CrawlOrchestrator",
    "SettingsStore",
    "UpdateHistory",
    "parse_update_time",
]
