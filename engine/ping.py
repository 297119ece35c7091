"""
Continuous latency measurement using the system ping command.

One long-running ``ping`` process emits a line per echo reply.  Output is
read in chunks, reassembled into lines, and every ``time=<float>`` sample
is reported and folded into a rolling average of the last ten replies.
"""
from __future__ import annotations

import codecs
import logging
import re
from typing import List, Optional, Sequence, Union

from .cancel import CancellationToken
from .constants import (
    NO_METRIC,
    PING_HOST,
    PING_INTERVAL,
    PING_WINDOW,
    PROBE_READ_SIZE,
)
from .errors import Cancelled, ProcessError, describe_error
from .probe import ProbeProcess, build_ping_command
from .report import Reporter, error_status
from .stats import RollingWindow, format_latency

logger = logging.getLogger(__name__)

STATUS_COMPLETE = "Ping test complete!"

# "time=12.3 ms" (Linux/macOS) or "time=12ms" (Windows)
_TIME_EQUALS = re.compile(r"time\s*=\s*(\d+(?:\.\d+)?)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_ping_time(line: str) -> Optional[float]:
    """Extract the round-trip time in milliseconds from one line of output.

    Only ``time=<value>`` carries a sample.  Header, summary, timeout and
    Windows ``time<1ms`` lines return ``None`` and are meant to be skipped.

    Examples:
        >>> parse_ping_time("64 bytes from 8.8.8.8: icmp_seq=1 ttl=64 time=23.4 ms")
        23.4
        >>> parse_ping_time("Reply from 8.8.8.8: bytes=32 time<1ms TTL=117")
        >>> parse_ping_time("PING 8.8.8.8 (8.8.8.8) 56(84) bytes of data.")
    """
    if not line:
        return None

    match = _TIME_EQUALS.search(line)
    if match:
        return float(match.group(1))
    return None


class LineBuffer:
    """Reassemble complete lines from arbitrarily split stream chunks."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        """Trailing partial line carried over to the next :meth:`feed`."""
        return self._pending

    def feed(self, data: Union[bytes, str]) -> List[str]:
        """Append *data* and return the lines it completed."""
        text = self._decoder.decode(data) if isinstance(data, bytes) else data
        *lines, self._pending = (self._pending + text).split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        """Return whatever partial line is left at end of stream."""
        rest = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        rest = rest.rstrip("\r")
        return [rest] if rest.strip() else []


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------

class PingLoop:
    """
    Latency loop around a continuous ``ping`` subprocess.

    Stopping (token cancellation) terminates the subprocess and ends the
    loop silently.  When the process ends by itself the rolling average is
    reported as a final summary.
    """

    def __init__(
        self,
        host: str = PING_HOST,
        interval: float = PING_INTERVAL,
        command: Optional[Sequence[str]] = None,
        window_size: int = PING_WINDOW,
        read_size: int = PROBE_READ_SIZE,
    ) -> None:
        self.host = host
        self.interval = interval
        self.command = list(command) if command else build_ping_command(host, interval)
        self.read_size = read_size
        self.window = RollingWindow(window_size)

    @property
    def status(self) -> str:
        return f"Pinging {self.host}..."

    async def run(self, token: CancellationToken, report: Reporter) -> None:
        """Ping until the process ends or *token* is cancelled.  Never raises."""
        logger.info("Ping loop starting: command=%s", self.command)
        self.window = RollingWindow(self.window.capacity)
        report(f"Testing ping to {self.host}...", "...")

        try:
            token.raise_if_cancelled()
            async with ProbeProcess(self.command) as probe:
                token.add_callback(probe.terminate)
                try:
                    await self._consume(probe, token, report)
                finally:
                    token.remove_callback(probe.terminate)

            if self.window and not token.is_cancelled():
                report(STATUS_COMPLETE, format_latency(self.window.average()))

        except Cancelled:
            logger.info("Ping loop stopped after %d samples", len(self.window))
        except Exception as exc:  # noqa: BLE001 -- every failure ends as a status line
            if token.is_cancelled():
                # Killed by stop; whatever broke on the way down is expected.
                logger.debug("Ping loop ended during stop: %s", describe_error(exc))
                return
            logger.warning("Ping loop failed: %s", describe_error(exc), exc_info=True)
            report(error_status(describe_error(exc)), NO_METRIC)

    # -- Internals ----------------------------------------------------------

    async def _consume(
        self,
        probe: ProbeProcess,
        token: CancellationToken,
        report: Reporter,
    ) -> None:
        lines = LineBuffer()

        while True:
            token.raise_if_cancelled()
            chunk = await token.guard(probe.read(self.read_size))
            if not chunk:
                break
            for line in lines.feed(chunk):
                self._handle_line(line, report)

        for line in lines.flush():
            self._handle_line(line, report)

        returncode = await probe.wait()
        logger.debug("Probe exited: returncode=%d", returncode)

        if returncode != 0 and not self.window and not token.is_cancelled():
            detail = await probe.read_stderr()
            if detail:
                raise ProcessError(detail.splitlines()[0])
            raise ProcessError(f"ping exited with status {returncode}")

    def _handle_line(self, line: str, report: Reporter) -> None:
        latency = parse_ping_time(line)
        if latency is None:
            return
        self.window.push(latency)
        report(self.status, format_latency(latency))
