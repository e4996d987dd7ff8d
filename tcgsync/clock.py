"""
Time source abstraction used by interval math and rate limiting.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Timezone-aware wall-clock time."""

    def monotonic(self) -> float:
        """Monotonic seconds for measuring gaps."""

    def sleep(self, seconds: float) -> None:
        """Suspend the caller."""


class SystemClock:
    """
    Real clock backed by `datetime.now`, `time.monotonic` and `time.sleep`.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
