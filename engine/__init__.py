"""SpeedMon engine -- continuous download, upload and ping measurement."""

from .cancel import CancellationToken
from .clock import Stopwatch, Throttle
from .controller import MeasurementController, MeasurementKind, default_loop_factories
from .download import DownloadLoop
from .errors import Cancelled, MeasurementError, ProcessError, TransferError
from .ping import LineBuffer, PingLoop, parse_ping_time
from .probe import ProbeProcess, build_ping_command
from .report import StatusUpdate
from .stats import RollingWindow, format_latency, format_rate, throughput_mbs
from .upload import UploadLoop

__all__ = [
    "CancellationToken",
    "Cancelled",
    "DownloadLoop",
    "LineBuffer",
    "MeasurementController",
    "MeasurementError",
    "MeasurementKind",
    "PingLoop",
    "ProbeProcess",
    "ProcessError",
    "RollingWindow",
    "StatusUpdate",
    "Stopwatch",
    "Throttle",
    "TransferError",
    "UploadLoop",
    "build_ping_command",
    "default_loop_factories",
    "format_latency",
    "format_rate",
    "parse_ping_time",
    "throughput_mbs",
]
