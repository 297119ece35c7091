"""Elapsed-time and periodic-tick helpers."""
from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


class Stopwatch:
    """Seconds elapsed since the last :meth:`reset`."""

    def __init__(self, clock: Clock = time.perf_counter) -> None:
        self._clock = clock
        self._start = clock()

    def reset(self) -> None:
        self._start = self._clock()

    def elapsed(self) -> float:
        return self._clock() - self._start


class Throttle:
    """
    Rate limiter for progress reports.

    :meth:`ready` returns ``True`` at most once per *interval* seconds.
    The first call after construction (or :meth:`reset`) waits a full
    interval, matching a timer that starts when the transfer starts.
    """

    def __init__(self, interval: float, clock: Clock = time.perf_counter) -> None:
        self.interval = interval
        self._clock = clock
        self._last = clock()

    def reset(self) -> None:
        self._last = self._clock()

    def ready(self) -> bool:
        now = self._clock()
        if now - self._last < self.interval:
            return False
        self._last = now
        return True
