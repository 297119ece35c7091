"""
Throughput and latency arithmetic.

Pure functions and one small container -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, List

from .constants import BYTES_PER_MB, PING_WINDOW


# ---------------------------------------------------------------------------
# Rolling window
# ---------------------------------------------------------------------------

class RollingWindow:
    """Fixed-capacity FIFO of the most recent latency samples."""

    def __init__(self, capacity: int = PING_WINDOW) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._samples: Deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)

    def push(self, value: float) -> None:
        """Append *value*, evicting the oldest sample when full."""
        self._samples.append(value)

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.push(value)

    def samples(self) -> List[float]:
        return list(self._samples)

    def average(self) -> float:
        if not self._samples:
            return 0.0
        return sum(self._samples) / len(self._samples)


# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------

def throughput_mbs(byte_count: int, seconds: float) -> float:
    """Speed in MB/s where 1 MB = 1,048,576 bytes.  ``0.0`` for no elapsed time."""
    if seconds <= 0:
        return 0.0
    return byte_count / (seconds * BYTES_PER_MB)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_rate(speed_mbs: float) -> str:
    """``5.0`` -> ``"5.00 MB/s"``."""
    return f"{speed_mbs:.2f} MB/s"


def format_latency(latency_ms: float) -> str:
    """``23.44`` -> ``"23.4 ms"``."""
    return f"{latency_ms:.1f} ms"
