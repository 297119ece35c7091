"""
Continuous upload speed measurement.

Uses HTTPS POST of random data to an echo endpoint.  Two strategies are
available and never mixed within one loop:

``streaming``
    The payload is generated chunk by chunk while it is being sent, as an
    async-generator request body.  Throughput is reported as the bytes
    generated so far in the iteration over the time since the iteration
    started; aiohttp applies back-pressure, so generated bytes track bytes
    on the wire.

``buffered``
    The whole payload is generated in memory first, then posted.  Only the
    POST is timed and the resulting figure stays on display while the next
    payload is generated.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import AsyncIterator, Callable, Optional

import aiohttp

from .cancel import CancellationToken
from .clock import Clock, Stopwatch, Throttle
from .constants import (
    BUFFERED_UPLOAD_PAUSE,
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    NO_METRIC,
    SOCK_READ_TIMEOUT,
    STATUS_CANCELLED,
    STREAMING_UPLOAD_PAUSE,
    UPLOAD_CHUNK_SIZE,
    UPLOAD_SIZE,
    UPLOAD_STRATEGIES,
    UPLOAD_UPDATE_INTERVAL,
    UPLOAD_URL,
)
from .errors import Cancelled, TransferError, describe_error
from .report import Reporter, error_status
from .stats import format_rate, throughput_mbs

logger = logging.getLogger(__name__)

STATUS_UPLOADING = "Testing upload speed..."
STATUS_GENERATING = "Generating data..."

HEADERS = {
    **COMMON_HEADERS,
    "Content-Type": "application/octet-stream",
}


class UploadLoop:
    """Upload throughput loop; see the module docstring for the strategies."""

    def __init__(
        self,
        url: str = UPLOAD_URL,
        strategy: str = "streaming",
        payload_size: int = UPLOAD_SIZE,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
        update_interval: float = UPLOAD_UPDATE_INTERVAL,
        pause: Optional[float] = None,
        clock: Clock = time.perf_counter,
        random_bytes: Callable[[int], bytes] = os.urandom,
    ) -> None:
        if strategy not in UPLOAD_STRATEGIES:
            raise ValueError(
                f"Unknown upload strategy {strategy!r}; expected one of {UPLOAD_STRATEGIES}"
            )
        if pause is None:
            pause = STREAMING_UPLOAD_PAUSE if strategy == "streaming" else BUFFERED_UPLOAD_PAUSE

        self.url = url
        self.strategy = strategy
        self.payload_size = payload_size
        self.chunk_size = chunk_size
        self.update_interval = update_interval
        self.pause = pause
        self.iterations = 0
        self.last_metric = format_rate(0.0)
        self._clock = clock
        self._random_bytes = random_bytes

    async def run(self, token: CancellationToken, report: Reporter) -> None:
        """Measure until *token* is cancelled.  Never raises."""
        logger.info("Upload loop starting: url=%s, strategy=%s", self.url, self.strategy)
        self.last_metric = format_rate(0.0)
        report(STATUS_UPLOADING, self.last_metric)

        iteration = self._stream_once if self.strategy == "streaming" else self._buffered_once

        try:
            async with self._session() as session:
                while True:
                    token.raise_if_cancelled()
                    await iteration(session, token, report)
                    self.iterations += 1
                    logger.debug("Upload iteration %d complete", self.iterations)
                    await token.sleep(self.pause)

        except Cancelled:
            logger.info("Upload loop cancelled after %d iterations", self.iterations)
            report(STATUS_CANCELLED, NO_METRIC)
        except Exception as exc:  # noqa: BLE001 -- every failure ends as a status line
            logger.warning("Upload loop failed: %s", describe_error(exc), exc_info=True)
            report(error_status(describe_error(exc)), NO_METRIC)

    # -- Strategies ---------------------------------------------------------

    async def _stream_once(
        self,
        session: aiohttp.ClientSession,
        token: CancellationToken,
        report: Reporter,
    ) -> None:
        stopwatch = Stopwatch(self._clock)
        throttle = Throttle(self.update_interval, self._clock)
        generated = 0

        async def body() -> AsyncIterator[bytes]:
            nonlocal generated
            while generated < self.payload_size and not token.is_cancelled():
                size = min(self.chunk_size, self.payload_size - generated)
                chunk = self._random_bytes(size)
                if token.is_cancelled():
                    return
                generated += size

                if throttle.ready():
                    speed = throughput_mbs(generated, stopwatch.elapsed())
                    report(STATUS_UPLOADING, format_rate(speed))

                yield chunk

        await token.guard(self._post(session, body()))
        # A cancelled generator ends the body early; that POST is not a result.
        token.raise_if_cancelled()

    async def _buffered_once(
        self,
        session: aiohttp.ClientSession,
        token: CancellationToken,
        report: Reporter,
    ) -> None:
        report(STATUS_GENERATING, self.last_metric)
        payload = await self._generate(token)

        stopwatch = Stopwatch(self._clock)
        await token.guard(self._post(session, payload))
        duration = stopwatch.elapsed()

        self.last_metric = format_rate(throughput_mbs(len(payload), duration))
        report(STATUS_UPLOADING, self.last_metric)

    # -- Internals ----------------------------------------------------------

    def _session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(
            total=None, connect=CONNECT_TIMEOUT, sock_read=SOCK_READ_TIMEOUT
        )
        return aiohttp.ClientSession(headers=HEADERS, timeout=timeout)

    async def _generate(self, token: CancellationToken) -> bytes:
        """Build the full payload, checking for cancellation between chunks."""
        buffer = bytearray()
        while len(buffer) < self.payload_size:
            token.raise_if_cancelled()
            size = min(self.chunk_size, self.payload_size - len(buffer))
            buffer += self._random_bytes(size)
            # Keep the event loop responsive while generating.
            await asyncio.sleep(0)
        token.raise_if_cancelled()
        return bytes(buffer)

    async def _post(self, session: aiohttp.ClientSession, data) -> None:  # noqa: ANN001
        async with session.post(self.url, data=data) as resp:
            if not 200 <= resp.status < 300:
                raise TransferError("Upload failed")
            await resp.read()
