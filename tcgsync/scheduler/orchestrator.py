"""
tcgsync/scheduler/orchestrator.py

Runs due data sources in priority order and records the outcome.

Run lifecycle
-------------
  1. Acquire the run lock without blocking; a held lock means another run is
     in flight and the attempt becomes a logged no-op.
  2. Probe connectivity (full runs only). A failed probe is recorded as a
     systemic-failure run with no per-source results.
  3. Process due sources high -> medium -> low, registration order inside a
     group. Robots denials mark the source skipped; any other exception marks
     it failed. Neither stops the run.
  4. Persist registry state, history and the last update time, then run
     retention cleanup. Cleanup failures are logged only.

There is no mid-run cancellation: disabling auto-update only affects future
scheduled executions.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable
from datetime import datetime

from tcgsync.clock import Clock, SystemClock
from tcgsync.crawling.cache import ResultCache
from tcgsync.crawling.http import ConnectivityProbe
from tcgsync.crawling.robots import RobotsPolicyEngine
from tcgsync.domain.updates import RunSummary, RunTrigger, SourceRunResult, UpdateRun
from tcgsync.errors import ConcurrentRunError, ConnectivityError, PolicyDeniedError
from tcgsync.logging_utils import log_event
from tcgsync.progress import ProgressStream
from tcgsync.scheduler.state import SOURCE_STATUS_KEY, SettingsStore, UpdateHistory
from tcgsync.sources.fetchers import FetchContext, FetcherRegistry
from tcgsync.sources.models import PRIORITY_ORDER, CrawlSource, SourceStatus
from tcgsync.sources.registry import SourceRegistry
from tcgsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """
    Single-flight update runner shared by scheduled and manual triggers.
    """

    def __init__(
        self,
        *,
        registry: SourceRegistry,
        fetchers: FetcherRegistry,
        context: FetchContext,
        kv_store: KeyValueStore,
        history: UpdateHistory,
        settings_store: SettingsStore,
        probe: ConnectivityProbe,
        cache: ResultCache | None = None,
        robots: RobotsPolicyEngine | None = None,
        progress: ProgressStream | None = None,
        clock: Clock | None = None,
        retention_days: int = 30,
    ) -> None:
        self.registry = registry
        self._fetchers = fetchers
        self._context = context
        self._kv_store = kv_store
        self.history = history
        self._settings_store = settings_store
        self._probe = probe
        self._cache = cache
        self._robots = robots
        self.progress = progress or ProgressStream()
        self._clock = clock or SystemClock()
        self._retention_days = retention_days
        self._lock = threading.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def scheduled_run(self) -> UpdateRun | None:
        """
        Entry point for the scheduler; never raises.
        """

        try:
            return self._execute_full(RunTrigger.SCHEDULED)
        except ConcurrentRunError:
            log_event(logger, logging.INFO, "update_run_already_in_progress", trigger=RunTrigger.SCHEDULED)
            return None
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scheduled update run failed unexpectedly")
            log_event(logger, logging.ERROR, "scheduled_run_crashed", error=str(exc))
            return None

    def run_full(self, trigger: str = RunTrigger.MANUAL) -> UpdateRun:
        """
        Run every due source; raise ConnectivityError after recording a
        systemic failure.
        """

        run = self._execute_full(trigger)
        if run.systemic_failure:
            raise ConnectivityError(run.error or "connectivity probe failed")
        return run

    def run_sources(self, keys: Iterable[str]) -> UpdateRun:
        """
        Run the named sources regardless of due state; re-raise the first
        source failure once the run has been recorded.
        """

        sources = [self.registry.find_by_key(key) for key in dict.fromkeys(keys)]
        self._acquire()
        try:
            run = self._new_run(RunTrigger.MANUAL)
            first_error: Exception | None = None
            for index, source in enumerate(sources):
                result, error = self._run_source(source, index, len(sources))
                run.results[source.key] = result
                if error is not None and first_error is None:
                    first_error = error
            self._finish_run(run, cleanup=False)
        finally:
            self._release()

        if first_error is not None:
            raise first_error
        return run

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise ConcurrentRunError("An update run is already in progress")
        self._running = True

    def _release(self) -> None:
        self._running = False
        self._lock.release()

    def _new_run(self, trigger: str) -> UpdateRun:
        run = UpdateRun(run_id=uuid.uuid4().hex, trigger=trigger, start_time=self._clock.now())
        log_event(logger, logging.INFO, "update_run_started", run_id=run.run_id, trigger=trigger)
        self.progress.emit("run_started", percent=0.0, detail=trigger)
        return run

    def _execute_full(self, trigger: str) -> UpdateRun:
        self._acquire()
        try:
            run = self._new_run(trigger)
            try:
                self._probe.check()
            except ConnectivityError as exc:
                return self._record_systemic_failure(run, exc)

            now = self._clock.now()
            due = self.registry.due_sources(now)
            groups = self.registry.group_by_priority(due)
            ordered: list[CrawlSource] = [
                source for priority in PRIORITY_ORDER for source in groups[priority.value]
            ]
            log_event(
                logger,
                logging.INFO,
                "update_run_plan",
                run_id=run.run_id,
                **{priority.value: [source.key for source in groups[priority.value]] for priority in PRIORITY_ORDER},
            )

            for index, source in enumerate(ordered):
                result, _ = self._run_source(source, index, len(ordered))
                run.results[source.key] = result

            self._finish_run(run, cleanup=True)
            return run
        finally:
            self._release()

    def _run_source(
        self,
        source: CrawlSource,
        index: int,
        total: int,
    ) -> tuple[SourceRunResult, Exception | None]:
        result = SourceRunResult(source=source.key, type=source.type.value, start_time=self._clock.now())
        self.progress.emit(
            "source_started",
            source=source.key,
            percent=round(index / total * 100, 2) if total else 0.0,
        )
        error: Exception | None = None

        try:
            fetcher = self._fetchers.create_fetcher(source=source, context=self._context)
            result.units_updated = fetcher.fetch()
            result.success = True
        except PolicyDeniedError as exc:
            result.skipped = True
            result.error = str(exc)
        except Exception as exc:  # noqa: BLE001
            result.error = str(exc)
            error = exc
        finally:
            result.end_time = self._clock.now()

        if result.success:
            self.registry.record_attempt(
                source.key,
                SourceStatus.SUCCESS,
                result.end_time,
                units_updated=result.units_updated,
            )
            log_event(
                logger,
                logging.INFO,
                "source_update_succeeded",
                source=source.key,
                units_updated=result.units_updated,
            )
        elif result.skipped:
            log_event(logger, logging.WARNING, "source_update_skipped", source=source.key, error=result.error)
        else:
            self.registry.record_attempt(
                source.key,
                SourceStatus.ERROR,
                result.end_time,
                error=result.error,
            )
            log_event(logger, logging.ERROR, "source_update_failed", source=source.key, error=result.error)

        self.progress.emit(
            "source_completed",
            source=source.key,
            percent=round((index + 1) / total * 100, 2) if total else 100.0,
            detail="success" if result.success else ("skipped" if result.skipped else "failed"),
        )
        return result, error

    def _record_systemic_failure(self, run: UpdateRun, exc: Exception) -> UpdateRun:
        run.end_time = self._clock.now()
        run.systemic_failure = True
        run.error = str(exc)
        run.summary = RunSummary()
        self.history.append(run)
        log_event(logger, logging.ERROR, "update_run_aborted", run_id=run.run_id, error=run.error)
        self.progress.emit("run_completed", percent=100.0, detail="systemic_failure")
        return run

    def _finish_run(self, run: UpdateRun, *, cleanup: bool) -> None:
        run.end_time = self._clock.now()
        run.summary = RunSummary.from_results(run.results)

        self._kv_store.set(SOURCE_STATUS_KEY, self.registry.to_payload())
        self.history.append(run)
        self._settings_store.mark_updated(run.end_time)

        if cleanup:
            self._cleanup(run.end_time)

        log_event(
            logger,
            logging.INFO,
            "update_run_completed",
            run_id=run.run_id,
            trigger=run.trigger,
            **run.summary.to_dict(),
        )
        self.progress.emit("run_completed", percent=100.0, detail=run.trigger)

    def _cleanup(self, now: datetime) -> None:
        try:
            removed = self._context.card_store.cleanup_expired(self._retention_days)
            log_event(
                logger,
                logging.INFO,
                "retention_cleanup_completed",
                removed=removed,
                days_old=self._retention_days,
                at=now,
            )
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.WARNING, "retention_cleanup_failed", error=str(exc))

        if self._cache is not None:
            try:
                self._cache.sweep()
            except Exception as exc:  # noqa: BLE001
                log_event(logger, logging.WARNING, "cache_sweep_failed", error=str(exc))

        if self._robots is not None:
            self._robots.clear_expired()
