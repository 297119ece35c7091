#!/usr/bin/env python3
"""
SpeedMon CLI -- continuous network speed and latency monitoring.

Usage::

    python speedmon.py download                  # live dashboard until Ctrl-C
    python speedmon.py upload --strategy buffered
    python speedmon.py ping --host 1.1.1.1 --interval 1
    python speedmon.py download --duration 30    # stop after 30 s
    python speedmon.py ping --simple             # plain text lines
    python speedmon.py ping --json               # JSON line per update
    python speedmon.py --show-config             # print effective config
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable, Dict, Optional

from engine.config import (
    config_path,
    load_config,
    save_config,
    validate_settings,
)
from engine.controller import MeasurementController, MeasurementKind, default_loop_factories
from engine.logging_config import configure_logging
from engine.report import Reporter, StatusUpdate
from ui.dashboard import LiveDashboard, console, print_header
from ui.output import JsonLinesSink, TextSink

logger = logging.getLogger("speedmon")

_TITLES = {
    MeasurementKind.DOWNLOAD: "Download Speed",
    MeasurementKind.UPLOAD: "Upload Speed",
    MeasurementKind.PING: "Ping Test",
}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def build_settings(args: argparse.Namespace, base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Overlay command-line overrides on the loaded config."""
    settings = dict(base if base is not None else load_config())
    kind = getattr(args, "test", None)

    if args.url:
        key = "upload_url" if kind == MeasurementKind.UPLOAD.value else "download_url"
        settings[key] = args.url
    if args.host:
        settings["ping_host"] = args.host
    if args.interval is not None:
        settings["ping_interval"] = args.interval
    if args.update_interval is not None:
        settings["update_interval"] = args.update_interval
    if args.strategy:
        settings["upload_strategy"] = args.strategy

    return settings


# ---------------------------------------------------------------------------
# Core runner
# ---------------------------------------------------------------------------

async def run_monitor(
    kind: MeasurementKind,
    settings: Dict[str, Any],
    sink: Reporter,
    duration: Optional[float] = None,
    on_busy_changed: Optional[Callable[[bool], None]] = None,
) -> None:
    """Run one measurement until it ends, *duration* elapses, or we are cancelled."""
    controller = MeasurementController(
        sink,
        loop_factories=default_loop_factories(settings),
        on_busy_changed=on_busy_changed,
    )
    controller.start(kind)

    try:
        if duration:
            try:
                await asyncio.wait_for(controller.wait_idle(), timeout=duration)
            except asyncio.TimeoutError:
                logger.info("Duration of %.1fs reached", duration)
        else:
            await controller.wait_idle()
    finally:
        controller.stop()
        await controller.wait_idle()


class _LastUpdate:
    """Sink wrapper remembering the final status for the exit code."""

    def __init__(self, sink: Reporter) -> None:
        self._sink = sink
        self.last: Optional[StatusUpdate] = None

    def __call__(self, status: str, metric: str) -> None:
        self.last = StatusUpdate(status, metric)
        self._sink(status, metric)

    @property
    def failed(self) -> bool:
        return self.last is not None and self.last.status.startswith("Error:")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SpeedMon -- continuous network speed and latency monitor",
    )
    parser.add_argument(
        "test",
        nargs="?",
        choices=[k.value for k in _TITLES],
        help="Measurement to run until stopped",
    )

    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Print one JSON object per update")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")

    # Test parameters
    parser.add_argument("--url", type=str, metavar="URL", help="Download file / upload endpoint URL")
    parser.add_argument("--host", type=str, metavar="HOST", help="Ping target (default: 8.8.8.8)")
    parser.add_argument("--interval", type=float, metavar="SECS", help="Seconds between pings (default: 0.5)")
    parser.add_argument("--update-interval", type=float, metavar="SECS", help="Seconds between download updates (default: 0.2)")
    parser.add_argument("--strategy", choices=["streaming", "buffered"], help="Upload strategy (default: streaming)")
    parser.add_argument("--duration", type=float, metavar="SECS", help="Stop after this many seconds (default: run until Ctrl-C)")

    # Configuration
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration and exit")
    parser.add_argument("--save-config", action="store_true", help="Persist the given options as new defaults")
    parser.add_argument("--log-level", type=str, metavar="LEVEL", help="Log level (default: $SPEEDMON_LOG_LEVEL or WARNING)")

    return parser


def main(argv: Optional[list] = None) -> None:
    parser = _parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    settings = build_settings(args)

    try:
        validate_settings(settings)
        if args.duration is not None and args.duration <= 0:
            raise ValueError("--duration must be positive")
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.save_config:
        path = save_config(settings)
        console.print(f"[green]Configuration saved to:[/green] {path}")

    if args.show_config:
        print(json.dumps({"path": config_path(), "settings": settings}, indent=2))
        return

    if not args.test:
        if not args.save_config:
            parser.print_usage()
        return

    kind = MeasurementKind(args.test)

    try:
        if args.json or args.simple:
            plain = JsonLinesSink(kind.value) if args.json else TextSink(kind.value)
            sink = _LastUpdate(plain)
            asyncio.run(run_monitor(kind, settings, sink, duration=args.duration))
        else:
            print_header()
            with LiveDashboard(_TITLES[kind]) as dashboard:
                sink = _LastUpdate(dashboard)
                asyncio.run(
                    run_monitor(
                        kind,
                        settings,
                        sink,
                        duration=args.duration,
                        on_busy_changed=dashboard.set_busy,
                    )
                )

    except KeyboardInterrupt:
        console.print("\n[yellow]Test stopped by user[/yellow]")
        return

    if sink.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
