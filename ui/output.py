"""
Plain-text and JSON-lines output for scripted use.
"""
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO


def create_update_json(kind: str, status: str, metric: str) -> Dict[str, Any]:
    """One status update as a JSON-serialisable dict."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "test": kind,
        "status": status,
        "metric": metric,
    }


def format_text_update(kind: str, status: str, metric: str) -> str:
    """``"[ping] Pinging 8.8.8.8... 23.4 ms"``"""
    prefix = f"[{kind}] " if kind else ""
    return f"{prefix}{status} {metric}"


class TextSink:
    """Reporting sink that prints one line per update."""

    def __init__(self, kind: str = "", stream: Optional[TextIO] = None) -> None:
        self.kind = kind
        self._stream = stream

    def __call__(self, status: str, metric: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(format_text_update(self.kind, status, metric) + "\n")
        stream.flush()


class JsonLinesSink:
    """Reporting sink that prints one JSON object per update."""

    def __init__(self, kind: str = "", stream: Optional[TextIO] = None) -> None:
        self.kind = kind
        self._stream = stream

    def __call__(self, status: str, metric: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(create_update_json(self.kind, status, metric)) + "\n")
        stream.flush()
