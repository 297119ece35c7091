"""
External ICMP probe process.

The ping loop owns exactly one :class:`ProbeProcess`.  It is an async
context manager so the subprocess is terminated on every exit path, and
:meth:`ProbeProcess.terminate` is a plain synchronous call so it can be
registered as a cancellation callback.  stderr is drained in the background
and only its last few lines are kept.
"""
from __future__ import annotations

import asyncio
import logging
import platform
from collections import deque
from typing import Deque, List, Optional, Sequence

from .constants import PROBE_READ_SIZE, PROBE_STDERR_LINES, PROBE_TERMINATE_GRACE
from .errors import ProcessError, describe_error

logger = logging.getLogger(__name__)


def build_ping_command(host: str, interval: float, system: Optional[str] = None) -> List[str]:
    """Build a platform-specific command for continuous pinging.

    Args:
        host: Target hostname or IP address
        interval: Seconds between echo requests (ignored on Windows,
            which has no sub-second interval flag)
        system: ``platform.system()`` value, detected when omitted

    Returns:
        List of command arguments for ``create_subprocess_exec``
    """
    system = system or platform.system()

    if system == "Windows":
        # Windows: -t pings until stopped, one request per second
        return ["ping", "-t", host]

    # Linux/macOS/BSD: -i interval in seconds
    return ["ping", "-i", f"{interval:g}", host]


class ProbeProcess:
    """Owned handle of a spawned probe subprocess with piped output."""

    def __init__(
        self,
        command: Sequence[str],
        terminate_grace: float = PROBE_TERMINATE_GRACE,
        stderr_lines: int = PROBE_STDERR_LINES,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.terminate_grace = terminate_grace
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_tail: Deque[bytes] = deque(maxlen=stderr_lines)
        self._stderr_task: Optional[asyncio.Task] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ProbeProcess:
        await self.spawn()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.close()

    # -- Lifecycle ----------------------------------------------------------

    async def spawn(self) -> None:
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProcessError(
                f"Could not start {self.command[0]}: {describe_error(exc)}"
            ) from exc

        # Drained for the life of the process; Process.wait() needs every pipe closed.
        self._stderr_task = asyncio.ensure_future(self._drain_stderr())
        logger.debug("Probe started: pid=%d, command=%s", self._process.pid, self.command)

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    def is_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def terminate(self) -> None:
        """Send SIGTERM (TerminateProcess on Windows) if still running."""
        if not self.is_alive():
            return
        try:
            self._process.terminate()
            logger.debug("Probe terminated: pid=%d", self._process.pid)
        except ProcessLookupError:
            pass

    async def close(self) -> None:
        """Terminate the process and reap it, killing it if it lingers."""
        if self._process is None:
            return

        self.terminate()
        try:
            await asyncio.wait_for(self._process.wait(), timeout=self.terminate_grace)
        except asyncio.TimeoutError:
            logger.warning("Probe ignored SIGTERM, killing: pid=%d", self._process.pid)
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            await self._process.wait()

        await self._stop_stderr()

    # -- I/O ----------------------------------------------------------------

    async def read(self, size: int) -> bytes:
        """Read up to *size* bytes of stdout; ``b""`` at end of stream."""
        if self._process is None or self._process.stdout is None:
            raise ProcessError("Probe process is not running")
        return await self._process.stdout.read(size)

    async def wait(self) -> int:
        if self._process is None:
            raise ProcessError("Probe process is not running")
        return await self._process.wait()

    async def read_stderr(self) -> str:
        """The retained tail of stderr, decoded and stripped.

        Waits up to ``terminate_grace`` for the stream to close so that the
        last lines of an exited process are included.
        """
        if self._stderr_task is not None and not self._stderr_task.done():
            await asyncio.wait({self._stderr_task}, timeout=self.terminate_grace)
        lines = [line.decode("utf-8", errors="replace").rstrip("\r") for line in self._stderr_tail]
        return "\n".join(lines).strip()

    async def _drain_stderr(self) -> None:
        stream = self._process.stderr if self._process else None
        if stream is None:
            return
        pending = b""
        while True:
            chunk = await stream.read(PROBE_READ_SIZE)
            if not chunk:
                break
            *lines, pending = (pending + chunk).split(b"\n")
            # A line with no newline in sight is truncated to its latest bytes.
            pending = pending[-PROBE_READ_SIZE:]
            self._stderr_tail.extend(line for line in lines if line.strip())
        if pending.strip():
            self._stderr_tail.append(pending)

    async def _stop_stderr(self) -> None:
        task = self._stderr_task
        if task is None:
            return
        if not task.done():
            await asyncio.wait({task}, timeout=self.terminate_grace)
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        elif not task.cancelled() and task.exception() is not None:
            logger.debug("Probe stderr reader failed: %r", task.exception())
