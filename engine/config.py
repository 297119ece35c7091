"""
User configuration file support.

Reads/writes ``~/.speedmon/config.json``.

Supported keys::

    download_url = "http://speedtest.tele2.net/100MB.zip"
    upload_url = "https://httpbin.org/post"
    upload_strategy = "streaming"   # or "buffered"
    ping_host = "8.8.8.8"
    ping_interval = 0.5             # seconds between echo requests
    update_interval = 0.2           # seconds between download reports
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping

from .constants import (
    DOWNLOAD_URL,
    MAX_INTERVAL,
    MIN_INTERVAL,
    PING_HOST,
    PING_INTERVAL,
    UPDATE_INTERVAL,
    UPLOAD_STRATEGIES,
    UPLOAD_URL,
)

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedmon")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "download_url": DOWNLOAD_URL,
    "upload_url": UPLOAD_URL,
    "upload_strategy": "streaming",
    "ping_host": PING_HOST,
    "ping_interval": PING_INTERVAL,
    "update_interval": UPDATE_INTERVAL,
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError):
        logger.warning("Ignoring unreadable config file %s", path, exc_info=True)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_settings(settings: Mapping[str, Any]) -> None:
    """Raise ``ValueError`` if any setting is out of range."""
    for key in ("ping_interval", "update_interval"):
        value = settings.get(key, DEFAULTS[key])
        if not isinstance(value, (int, float)) or not MIN_INTERVAL <= value <= MAX_INTERVAL:
            raise ValueError(
                f"{key} must be between {MIN_INTERVAL} and {MAX_INTERVAL} seconds"
            )

    strategy = settings.get("upload_strategy", DEFAULTS["upload_strategy"])
    if strategy not in UPLOAD_STRATEGIES:
        raise ValueError(f"upload_strategy must be one of {', '.join(UPLOAD_STRATEGIES)}")

    for key in ("download_url", "upload_url", "ping_host"):
        if not str(settings.get(key, DEFAULTS[key])).strip():
            raise ValueError(f"{key} must not be empty")
