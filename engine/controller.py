"""
Measurement controller -- runs at most one measurement loop at a time.

The presentation layer calls :meth:`MeasurementController.start` and
:meth:`MeasurementController.stop` and receives ``(status, metric)`` pairs
through the sink it passed in.

Policy for ``start()`` while a measurement is active: stop-then-start.  The
running loop's token is cancelled and its reports are invalidated at once;
the new loop's task waits for the old task to unwind (up to
``drain_timeout``) before measuring, so two loops never overlap.

Every run carries a generation number.  A loop's report callback forwards
to the sink only while its generation is current, so a superseded or
stopped loop cannot emit stale updates from its cleanup path.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from .cancel import CancellationToken
from .config import DEFAULTS
from .constants import DRAIN_TIMEOUT, NO_METRIC, STATUS_STOPPED
from .download import DownloadLoop
from .errors import describe_error
from .ping import PingLoop
from .report import Reporter, error_status
from .upload import UploadLoop

logger = logging.getLogger(__name__)


class MeasurementKind(enum.Enum):
    """Which measurement loop, if any, is active."""

    DOWNLOAD = "download"
    UPLOAD = "upload"
    PING = "ping"
    NONE = "none"


class MeasurementLoop(Protocol):
    """Interface shared by the download, upload and ping loops."""

    async def run(self, token: CancellationToken, report: Reporter) -> None:
        """Measure until cancelled or failed; report progress; never raise."""
        ...


LoopFactory = Callable[[], MeasurementLoop]


def default_loop_factories(
    settings: Optional[Mapping[str, Any]] = None,
) -> Dict[MeasurementKind, LoopFactory]:
    """Loop constructors for each kind, configured from *settings*."""
    cfg: Dict[str, Any] = dict(DEFAULTS)
    cfg.update(settings or {})

    return {
        MeasurementKind.DOWNLOAD: lambda: DownloadLoop(
            url=cfg["download_url"],
            update_interval=cfg["update_interval"],
        ),
        MeasurementKind.UPLOAD: lambda: UploadLoop(
            url=cfg["upload_url"],
            strategy=cfg["upload_strategy"],
        ),
        MeasurementKind.PING: lambda: PingLoop(
            host=cfg["ping_host"],
            interval=cfg["ping_interval"],
        ),
    }


class MeasurementController:
    """
    Owns the "current measurement" state.

    ``start()`` must be called from the event-loop thread (it creates a
    task).  ``stop()`` only issues signals and may be called from any
    thread.  Neither blocks.
    """

    def __init__(
        self,
        sink: Reporter,
        loop_factories: Optional[Mapping[MeasurementKind, LoopFactory]] = None,
        on_busy_changed: Optional[Callable[[bool], None]] = None,
        drain_timeout: float = DRAIN_TIMEOUT,
    ) -> None:
        self._sink = sink
        self._factories: Dict[MeasurementKind, LoopFactory] = dict(
            loop_factories if loop_factories is not None else default_loop_factories()
        )
        self.on_busy_changed = on_busy_changed
        self.drain_timeout = drain_timeout

        # Reentrant: a sink may call stop() from inside a report.
        self._lock = threading.RLock()
        self._generation = 0
        self._active = MeasurementKind.NONE
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    # -- State --------------------------------------------------------------

    @property
    def active_kind(self) -> MeasurementKind:
        with self._lock:
            return self._active

    @property
    def is_running(self) -> bool:
        return self.active_kind is not MeasurementKind.NONE

    # -- Public API ---------------------------------------------------------

    def start(self, kind: MeasurementKind) -> asyncio.Task:
        """Stop whatever is running, then start *kind*.  Returns the loop task."""
        if kind is MeasurementKind.NONE:
            raise ValueError("Cannot start MeasurementKind.NONE; use stop()")
        factory = self._factories.get(kind)
        if factory is None:
            raise ValueError(f"No measurement loop registered for {kind.value}")

        event_loop = asyncio.get_running_loop()

        with self._lock:
            previous_kind = self._active
            previous_task = self._task
            if self._token is not None:
                self._token.cancel()

            self._generation += 1
            generation = self._generation
            token = CancellationToken()
            self._token = token
            self._active = kind
            self._task = event_loop.create_task(
                self._run(kind, factory, token, generation, previous_task),
                name=f"speedmon-{kind.value}-{generation}",
            )
            task = self._task

        if previous_kind is not MeasurementKind.NONE:
            logger.info("Superseding %s measurement with %s", previous_kind.value, kind.value)
        logger.info("Measurement started: kind=%s, generation=%d", kind.value, generation)

        self._notify_busy(True)
        return task

    def stop(self) -> None:
        """Cancel the active measurement, if any.  Idempotent and thread-safe."""
        with self._lock:
            was_running = self._active is not MeasurementKind.NONE
            token = self._token

            if token is not None:
                self._generation += 1  # invalidate the running loop's reports
            self._active = MeasurementKind.NONE
            self._token = None

            generation = self._generation

            if token is not None:
                token.cancel()
            if was_running:
                self._emit(STATUS_STOPPED, NO_METRIC)

        if was_running:
            logger.info("Measurement stopped (generation=%d)", generation)
        self._notify_busy(False)

    async def wait_idle(self) -> None:
        """Wait until the most recently started loop task has finished."""
        while True:
            with self._lock:
                task = self._task
            if task is None or task.done():
                return
            await asyncio.wait({task})

    # -- Internals ----------------------------------------------------------

    async def _run(
        self,
        kind: MeasurementKind,
        factory: LoopFactory,
        token: CancellationToken,
        generation: int,
        previous: Optional[asyncio.Task],
    ) -> None:
        if previous is not None and not previous.done():
            done, _ = await asyncio.wait({previous}, timeout=self.drain_timeout)
            if not done:
                logger.warning(
                    "Previous measurement still unwinding after %.1fs; starting %s anyway",
                    self.drain_timeout,
                    kind.value,
                )

        report = self._reporter(generation)
        try:
            if not token.is_cancelled():
                measurement = factory()
                await measurement.run(token, report)
        except Exception as exc:  # noqa: BLE001 -- loops report their own errors
            logger.exception("Measurement %s crashed", kind.value)
            report(error_status(describe_error(exc)), NO_METRIC)
        finally:
            self._finish(generation, kind)

    def _reporter(self, generation: int) -> Reporter:
        def report(status: str, metric: str) -> None:
            with self._lock:
                if generation != self._generation:
                    logger.debug(
                        "Ignoring stale update: generation=%d (current=%d), status=%s",
                        generation,
                        self._generation,
                        status,
                    )
                    return
                self._emit(status, metric)

        return report

    def _finish(self, generation: int, kind: MeasurementKind) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._active = MeasurementKind.NONE
            self._token = None

        logger.info("Measurement ended: kind=%s, generation=%d", kind.value, generation)
        self._notify_busy(False)

    def _emit(self, status: str, metric: str) -> None:
        try:
            self._sink(status, metric)
        except Exception:  # noqa: BLE001 -- a broken sink must not kill the loop
            logger.warning("Reporting sink failed on %r", status, exc_info=True)

    def _notify_busy(self, busy: bool) -> None:
        if self.on_busy_changed is None:
            return
        try:
            self.on_busy_changed(busy)
        except Exception:  # noqa: BLE001
            logger.warning("on_busy_changed callback failed", exc_info=True)
