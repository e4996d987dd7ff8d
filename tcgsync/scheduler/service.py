"""
Caller-facing auto-update service backed by an APScheduler cron job.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler

from tcgsync.domain.grading import GradingQueryResult
from tcgsync.domain.timestamps import to_iso
from tcgsync.domain.updates import ManualUpdateOutcome, RunTrigger, UpdateRun
from tcgsync.errors import ConcurrentRunError, ConnectivityError, SourceNotFoundError
from tcgsync.grading.aggregator import MultiAuthorityAggregator
from tcgsync.logging_utils import log_event
from tcgsync.scheduler.orchestrator import CrawlOrchestrator
from tcgsync.scheduler.state import (
    SOURCE_STATUS_KEY,
    AutoUpdateSettings,
    SettingsStore,
    parse_update_time,
)
from tcgsync.sources.models import CrawlSource
from tcgsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

AUTO_UPDATE_JOB_ID = "multi_source_auto_update"


class AutoUpdateService:
    """
    Owns the schedule, persisted settings and manual triggers.
    """

    def __init__(
        self,
        *,
        orchestrator: CrawlOrchestrator,
        aggregator: MultiAuthorityAggregator,
        settings_store: SettingsStore,
        kv_store: KeyValueStore,
        scheduler: BackgroundScheduler | None = None,
        timezone: str = "UTC",
    ) -> None:
        self._orchestrator = orchestrator
        self._aggregator = aggregator
        self._settings_store = settings_store
        self._kv_store = kv_store
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone)
        self._settings = AutoUpdateSettings(enabled=False, update_time=settings_store.default_update_time)
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def orchestrator(self) -> CrawlOrchestrator:
        return self._orchestrator

    @property
    def scheduler(self) -> BackgroundScheduler:
        return self._scheduler

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Restore persisted settings, history and source state.
        """

        with self._lock:
            if self._initialized:
                return
            self._settings = self._settings_store.load()
            self._orchestrator.history.load()
            self._orchestrator.registry.load_payload(self._kv_store.get(SOURCE_STATUS_KEY))
            if self._settings.enabled:
                self._schedule_job(self._settings.update_time)
            self._initialized = True

        log_event(
            logger,
            logging.INFO,
            "auto_update_initialized",
            enabled=self._settings.enabled,
            update_time=self._settings.update_time,
            sources=len(self._orchestrator.registry),
        )

    def start(self) -> None:
        self.initialize()
        if not self._scheduler.running:
            self._scheduler.start()
            log_event(
                logger,
                logging.INFO,
                "scheduler_started",
                jobs=len(self._scheduler.get_jobs()),
            )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=True)
            log_event(logger, logging.INFO, "scheduler_shut_down")

    # ------------------------------------------------------------------
    # Schedule settings
    # ------------------------------------------------------------------

    def enable_auto_update(self, update_time: str | None = None) -> AutoUpdateSettings:
        update_time = update_time or self._settings.update_time
        parse_update_time(update_time)
        with self._lock:
            self._settings = AutoUpdateSettings(enabled=True, update_time=update_time)
            self._settings_store.save(self._settings)
            self._schedule_job(update_time)
        log_event(logger, logging.INFO, "auto_update_enabled", update_time=update_time)
        return self._settings

    def disable_auto_update(self) -> AutoUpdateSettings:
        with self._lock:
            self._settings = AutoUpdateSettings(enabled=False, update_time=self._settings.update_time)
            self._settings_store.save(self._settings)
            self._unschedule_job()
        log_event(logger, logging.INFO, "auto_update_disabled")
        return self._settings

    def set_update_time(self, update_time: str) -> AutoUpdateSettings:
        parse_update_time(update_time)
        with self._lock:
            self._settings = AutoUpdateSettings(enabled=self._settings.enabled, update_time=update_time)
            self._settings_store.save(self._settings)
            if self._settings.enabled:
                self._schedule_job(update_time)
        log_event(logger, logging.INFO, "auto_update_time_set", update_time=update_time)
        return self._settings

    def _schedule_job(self, update_time: str) -> None:
        hour, minute = parse_update_time(update_time)
        self._scheduler.add_job(
            self._orchestrator.scheduled_run,
            trigger="cron",
            hour=hour,
            minute=minute,
            id=AUTO_UPDATE_JOB_ID,
            name="Multi-source auto update",
            replace_existing=True,
            misfire_grace_time=3600,
            coalesce=True,
            max_instances=1,
        )

    def _unschedule_job(self) -> None:
        if self._scheduler.get_job(AUTO_UPDATE_JOB_ID) is not None:
            self._scheduler.remove_job(AUTO_UPDATE_JOB_ID)

    def next_run_time(self) -> str | None:
        job = self._scheduler.get_job(AUTO_UPDATE_JOB_ID)
        if job is None:
            return None
        return to_iso(getattr(job, "next_run_time", None))

    # ------------------------------------------------------------------
    # Data sources
    # ------------------------------------------------------------------

    def toggle_data_source(self, source_key: str, enabled: bool) -> CrawlSource:
        source = self._orchestrator.registry.toggle_enabled(source_key, enabled)
        self._persist_sources()
        return source

    def set_source_update_interval(self, source_key: str, hours: float) -> CrawlSource:
        source = self._orchestrator.registry.set_interval(source_key, hours)
        self._persist_sources()
        return source

    def get_data_source_status(self) -> dict[str, list[dict[str, Any]]]:
        return self._orchestrator.registry.status_snapshot()

    def _persist_sources(self) -> None:
        self._kv_store.set(SOURCE_STATUS_KEY, self._orchestrator.registry.to_payload())

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def trigger_manual_update(self, source_keys: Iterable[str] | None = None) -> ManualUpdateOutcome:
        """
        Run now. Failures come back as `success=False`; a run already in
        flight makes this a skipped no-op. Unknown source keys raise
        SourceNotFoundError.
        """

        keys = list(source_keys) if source_keys else []
        try:
            if keys:
                run = self._orchestrator.run_sources(keys)
            else:
                run = self._orchestrator.run_full(RunTrigger.MANUAL)
        except ConcurrentRunError as exc:
            log_event(logger, logging.INFO, "manual_update_skipped", reason=str(exc))
            return ManualUpdateOutcome(success=False, skipped=True, error=str(exc))
        except SourceNotFoundError:
            raise
        except ConnectivityError as exc:
            latest = self._latest_run()
            return ManualUpdateOutcome(
                success=False,
                error=str(exc),
                run_id=latest.run_id if latest else None,
            )
        except Exception as exc:  # noqa: BLE001
            latest = self._latest_run()
            log_event(logger, logging.ERROR, "manual_update_failed", sources=keys, error=str(exc))
            return ManualUpdateOutcome(
                success=False,
                results=dict(latest.results) if latest else {},
                error=str(exc),
                run_id=latest.run_id if latest else None,
            )

        return ManualUpdateOutcome(success=True, results=dict(run.results), run_id=run.run_id)

    def _latest_run(self) -> UpdateRun | None:
        recent = self._orchestrator.history.recent(1)
        return recent[0] if recent else None

    def get_update_history(self, limit: int = 50) -> list[UpdateRun]:
        return self._orchestrator.history.recent(limit)

    def get_service_status(self) -> dict[str, Any]:
        last_update = self._settings_store.last_update_time()
        return {
            "is_initialized": self._initialized,
            "is_running": self._orchestrator.is_running,
            "is_enabled": self._settings.enabled,
            "update_time": self._settings.update_time,
            "last_update": to_iso(last_update),
            "next_run_time": self.next_run_time(),
            "data_sources": self.get_data_source_status(),
            "update_history": len(self._orchestrator.history),
        }

    # ------------------------------------------------------------------
    # Grading queries
    # ------------------------------------------------------------------

    def get_grading_distribution(
        self,
        card_name: str,
        card_series: str = "",
        card_number: str = "",
        authorities: Iterable[str] | None = None,
        *,
        use_cache: bool = True,
        force_refresh: bool = False,
        allow_partial: bool = False,
    ) -> GradingQueryResult:
        return self._aggregator.get_distribution(
            card_name,
            card_series,
            card_number,
            authorities,
            use_cache=use_cache,
            force_refresh=force_refresh,
            allow_partial=allow_partial,
        )
