# src/rewardpool/runtime/clock.py
from __future__ import annotations

import threading
import time
from typing import Protocol

from rewardpool.runtime.errors import ClockRegression, InvalidArgument


class Clock(Protocol):
    def now(self) -> int:
        """Current time in whole seconds. Must never go backwards."""
        ...


class SystemClock:
    """Wall-clock seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Deterministic clock for tests and simulations."""

    def __init__(self, start: int = 0) -> None:
        if int(start) < 0:
            raise InvalidArgument("negative_time", {"start": start})
        self._now = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, t: int) -> None:
        with self._lock:
            if int(t) < self._now:
                raise ClockRegression("clock_moved_backwards", {"now": self._now, "requested": int(t)})
            self._now = int(t)

    def advance(self, seconds: int) -> int:
        if int(seconds) < 0:
            raise InvalidArgument("negative_advance", {"seconds": seconds})
        with self._lock:
            self._now += int(seconds)
            return self._now
