"""
Subscribable progress event stream for runs and grading queries.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from tcgsync.domain.updates import ProgressEvent
from tcgsync.logging_utils import log_event

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class ProgressStream:
    """
    Fan-out of progress events; a failing listener never affects the publisher.
    """

    def __init__(self) -> None:
        self._listeners: list[ProgressListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "progress_listener_failed",
                    step=event.step,
                    source=event.source,
                    error=str(exc),
                )

    def emit(
        self,
        step: str,
        *,
        source: str | None = None,
        percent: float = 0.0,
        detail: str | None = None,
    ) -> None:
        self.publish(ProgressEvent(step=step, source=source, percent=percent, detail=detail))
