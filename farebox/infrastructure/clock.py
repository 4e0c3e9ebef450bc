"""Monotonic clock and repeating timers on the asyncio loop."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


class ClockSource(Protocol):
    """What a meter needs from a clock."""

    def now(self) -> float:
        """Monotonic time in milliseconds."""
        ...

    def schedule_repeating(
        self, interval_ms: float, callback: Callable[[], None]
    ) -> CancelHandle:
        ...


class RepeatingTimer:
    """
    Re-arming loop.call_later chain.

    cancel() is synchronous: once it returns, callback will not fire again.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_s: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval = interval_s
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False
        self.fired = 0
        self._arm()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _arm(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self.fired += 1
        try:
            self._callback()
        except Exception as e:
            logger.error("Timer callback error: %s", e)
        if not self._cancelled:
            self._arm()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioClock:
    """
    Clock backed by time.monotonic() and the running event loop.

    Usage:
        clock = AsyncioClock()
        timer = clock.schedule_repeating(1000, on_tick)
        ...
        timer.cancel()
    """

    def now(self) -> float:
        return time.monotonic() * 1000.0

    def schedule_repeating(
        self, interval_ms: float, callback: Callable[[], None]
    ) -> RepeatingTimer:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        loop = asyncio.get_running_loop()
        return RepeatingTimer(loop, interval_ms / 1000.0, callback)
