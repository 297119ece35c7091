"""Logging configuration for SpeedMon."""
from __future__ import annotations

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "SPEEDMON_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_log_level(name: Optional[str] = None) -> int:
    """Map a level name (or ``$SPEEDMON_LOG_LEVEL``) to a logging constant.

    Unknown names fall back to WARNING.
    """
    if name is None:
        name = os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)
    return _LOG_LEVELS.get(name.strip().upper(), logging.WARNING)


def configure_logging(level: Optional[str] = None, console: Optional[Console] = None) -> None:
    """Configure application-wide logging.

    Respects the SPEEDMON_LOG_LEVEL environment variable (default: WARNING,
    so the live display stays readable).  Records go to stderr through a
    ``rich`` handler, which renders above an active live display instead of
    tearing it.

    Examples:
        # Debug level for troubleshooting
        $ SPEEDMON_LOG_LEVEL=DEBUG python speedmon.py ping
    """
    log_level = resolve_log_level(level)
    handler = RichHandler(
        console=console if console is not None else Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )

    logging.basicConfig(
        level=log_level,
        format="%(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
        force=True,
    )

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s", logging.getLevelName(log_level)
    )
