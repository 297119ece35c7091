"""
Continuous download speed measurement.

Repeatedly streams a large file over HTTP and reports the running
throughput of the current transfer.  The loop never finishes on its own:
when a transfer completes it pauses briefly and starts the next one, until
the cancellation token fires or something goes wrong.
"""
from __future__ import annotations

import logging
import time

import aiohttp

from .cancel import CancellationToken
from .clock import Clock, Stopwatch, Throttle
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_RESTART_PAUSE,
    DOWNLOAD_URL,
    NO_METRIC,
    SOCK_READ_TIMEOUT,
    STATUS_CANCELLED,
    UPDATE_INTERVAL,
)
from .errors import Cancelled, TransferError, describe_error
from .report import Reporter, error_status
from .stats import format_rate, throughput_mbs

logger = logging.getLogger(__name__)

STATUS_DOWNLOADING = "Testing download speed..."


class DownloadLoop:
    """
    Download throughput loop.

    Each iteration issues one streaming GET, reads the body in
    ``chunk_size`` pieces and, at most once per ``update_interval``,
    reports ``bytes / elapsed`` in MB/s measured from the moment the GET
    was issued.
    """

    def __init__(
        self,
        url: str = DOWNLOAD_URL,
        update_interval: float = UPDATE_INTERVAL,
        pause: float = DOWNLOAD_RESTART_PAUSE,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.url = url
        self.update_interval = update_interval
        self.pause = pause
        self.chunk_size = chunk_size
        self.iterations = 0
        self._clock = clock

    async def run(self, token: CancellationToken, report: Reporter) -> None:
        """Measure until *token* is cancelled.  Never raises."""
        logger.info("Download loop starting: url=%s", self.url)
        report(STATUS_DOWNLOADING, format_rate(0.0))

        try:
            async with self._session() as session:
                while True:
                    token.raise_if_cancelled()
                    received = await token.guard(self._transfer(session, token, report))
                    self.iterations += 1
                    logger.debug(
                        "Download iteration %d complete: %d bytes", self.iterations, received
                    )
                    await token.sleep(self.pause)

        except Cancelled:
            logger.info("Download loop cancelled after %d iterations", self.iterations)
            report(STATUS_CANCELLED, NO_METRIC)
        except Exception as exc:  # noqa: BLE001 -- every failure ends as a status line
            logger.warning("Download loop failed: %s", describe_error(exc), exc_info=True)
            report(error_status(describe_error(exc)), NO_METRIC)

    # -- Internals ----------------------------------------------------------

    def _session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(
            total=None, connect=CONNECT_TIMEOUT, sock_read=SOCK_READ_TIMEOUT
        )
        headers = {**COMMON_HEADERS, "Accept-Encoding": "identity"}
        return aiohttp.ClientSession(headers=headers, timeout=timeout)

    async def _transfer(
        self,
        session: aiohttp.ClientSession,
        token: CancellationToken,
        report: Reporter,
    ) -> int:
        stopwatch = Stopwatch(self._clock)
        throttle = Throttle(self.update_interval, self._clock)
        received = 0

        async with session.get(self.url) as resp:
            if not 200 <= resp.status < 300 or resp.content is None:
                raise TransferError("Failed to start download")

            while True:
                token.raise_if_cancelled()
                chunk = await resp.content.read(self.chunk_size)
                if not chunk:
                    break

                received += len(chunk)
                if throttle.ready():
                    speed = throughput_mbs(received, stopwatch.elapsed())
                    report(STATUS_DOWNLOADING, format_rate(speed))

        return received
