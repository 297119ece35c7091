"""
Cooperative cancellation for measurement loops.

A :class:`CancellationToken` is created per measurement run and shared with
every sub-operation of that run.  The controller (or any other thread)
calls :meth:`CancellationToken.cancel`; the loop observes it by polling
:meth:`~CancellationToken.is_cancelled` at iteration boundaries and by
running its blocking I/O through :meth:`~CancellationToken.guard` and
:meth:`~CancellationToken.sleep`, which abort as soon as the token fires.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, List, Optional, TypeVar

from .errors import Cancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class CancellationToken:
    """Single-use, thread-safe cancellation flag with an awaitable wake-up."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._event: Optional[asyncio.Event] = None
        self._callbacks: List[Callable[[], None]] = []

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancelled() else "active"
        return f"<CancellationToken {state}>"

    # -- Query --------------------------------------------------------------

    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    @property
    def cancelled(self) -> bool:
        return self.is_cancelled()

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise Cancelled()

    # -- Signal -------------------------------------------------------------

    def cancel(self) -> None:
        """Cancel the token.  Idempotent and safe from any thread."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            loop = self._loop
            callbacks, self._callbacks = self._callbacks, []

        if loop is None or loop.is_closed() or _running_loop() is loop:
            self._fire(callbacks)
        else:
            loop.call_soon_threadsafe(self._fire, callbacks)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run *callback* on cancel, or right away if already cancelled."""
        self._bind_if_running()
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    # -- Awaitables ---------------------------------------------------------

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._bind().wait()

    async def sleep(self, seconds: float) -> None:
        """Pause for *seconds*; raise :class:`Cancelled` if cancelled first."""
        self.raise_if_cancelled()
        event = self._bind()
        try:
            await asyncio.wait_for(event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise Cancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await *awaitable* unless the token fires first.

        On cancellation the in-flight work is cancelled (aborting any HTTP
        request or pipe read it was blocked on) and :class:`Cancelled` is
        raised.
        """
        self.raise_if_cancelled()
        event = self._bind()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as exc:  # noqa: BLE001 -- result of aborted work is moot
            logger.debug("Aborted operation raised while unwinding: %r", exc)
        raise Cancelled()

    # -- Internals ----------------------------------------------------------

    def _bind(self) -> asyncio.Event:
        """Attach the token to the running event loop (first caller wins)."""
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._event is None:
                self._loop = loop
                self._event = asyncio.Event()
                if self._cancelled:
                    self._event.set()
            return self._event

    def _bind_if_running(self) -> None:
        if _running_loop() is not None:
            self._bind()

    def _fire(self, callbacks: List[Callable[[], None]]) -> None:
        with self._lock:
            event = self._event
        if event is not None:
            event.set()
        for callback in callbacks:
            self._run_callback(callback)

    @staticmethod
    def _run_callback(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:  # noqa: BLE001 -- one bad callback must not block the rest
            logger.warning("Cancel callback %r failed", callback, exc_info=True)
