"""Status updates passed from measurement loops to the reporting sink."""
from __future__ import annotations

from typing import Callable, NamedTuple

Reporter = Callable[[str, str], None]


class StatusUpdate(NamedTuple):
    """One ``(status, metric)`` pair, e.g. ``("Pinging 8.8.8.8...", "23.4 ms")``."""

    status: str
    metric: str


def error_status(message: str) -> str:
    return f"Error: {message}"
