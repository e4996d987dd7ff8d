"""
Per-target request rate limiter.
"""

from __future__ import annotations

import threading

from tcgsync.clock import Clock, SystemClock


class RateLimiter:
    """
    Enforces a minimum gap between consecutive requests to the same target key.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._last_request_by_target: dict[str, float] = {}
        self._lock = threading.Lock()

    def respect_delay(self, target_key: str, delay_seconds: float) -> float:
        """
        Sleep as needed so calls for `target_key` are at least `delay_seconds`
        apart; return the seconds waited.
        """

        min_interval = max(0.0, delay_seconds)
        waited = 0.0
        with self._lock:
            last_time = self._last_request_by_target.get(target_key)
            if last_time is not None:
                elapsed = self._clock.monotonic() - last_time
                wait_seconds = min_interval - elapsed
                if wait_seconds > 0:
                    self._clock.sleep(wait_seconds)
                    waited = wait_seconds
            self._last_request_by_target[target_key] = self._clock.monotonic()
        return waited

    def last_request_at(self, target_key: str) -> float | None:
        with self._lock:
            return self._last_request_by_target.get(target_key)

    def reset(self, target_key: str | None = None) -> None:
        with self._lock:
            if target_key is None:
                self._last_request_by_target.clear()
            else:
                self._last_request_by_target.pop(target_key, None)
