"""UI layer -- Rich live dashboard and plain output sinks."""

from .dashboard import LiveDashboard, console, print_header, render_status
from .output import (
    JsonLinesSink,
    TextSink,
    create_update_json,
    format_text_update,
)

__all__ = [
    "JsonLinesSink",
    "LiveDashboard",
    "TextSink",
    "console",
    "create_update_json",
    "format_text_update",
    "print_header",
    "render_status",
]
