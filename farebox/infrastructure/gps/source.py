"""
Position sources.

A position source hands fixes to a subscriber until it is unsubscribed:

    unsubscribe = source.subscribe(on_fix, on_error)
    ...
    unsubscribe()

StreamPositionSource adapts any async fix stream (gpsd, mock route, a test
queue) to that contract. Streams yield Position objects for fixes and
PositionSourceError objects for recoverable errors; an exception raised by
the stream is fatal and ends the subscription.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Protocol, Union

from ...domain.models import Position

logger = logging.getLogger(__name__)


class PositionErrorCode(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


class PositionSourceError(Exception):
    """A fix could not be produced."""

    def __init__(
        self, code: PositionErrorCode = PositionErrorCode.UNKNOWN, message: str = ""
    ) -> None:
        self.code = code
        self.message = message or code.value.replace("_", " ").lower()
        super().__init__(f"{self.code.value}: {self.message}")


FixCallback = Callable[[Position], None]
ErrorCallback = Callable[[PositionSourceError], None]
Unsubscribe = Callable[[], None]
StreamItem = Union[Position, PositionSourceError]


class PositionSource(Protocol):
    """What a meter needs from a location provider."""

    def subscribe(
        self, on_fix: FixCallback, on_error: Optional[ErrorCallback] = None
    ) -> Unsubscribe:
        ...


class StreamPositionSource:
    """Run an async fix stream in a task for each subscriber."""

    def __init__(
        self, stream_factory: Callable[[], AsyncIterator[StreamItem]], name: str = "stream"
    ) -> None:
        self._factory = stream_factory
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_subscriptions(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def subscribe(
        self, on_fix: FixCallback, on_error: Optional[ErrorCallback] = None
    ) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._pump(on_fix, on_error), name=f"{self.name}-fixes")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _pump(self, on_fix: FixCallback, on_error: Optional[ErrorCallback]) -> None:
        try:
            async with aclosing(self._factory()) as stream:
                async for item in stream:
                    if isinstance(item, PositionSourceError):
                        _deliver(on_error, item)
                    else:
                        _deliver(on_fix, item)
        except asyncio.CancelledError:
            raise
        except PositionSourceError as e:
            logger.error("Position source %s failed: %s", self.name, e)
            _deliver(on_error, e)
        except Exception as e:
            logger.error("Position source %s failed: %s", self.name, e)
            _deliver(on_error, PositionSourceError(PositionErrorCode.UNKNOWN, str(e)))


def _deliver(callback: Optional[Callable], item: object) -> None:
    if callback is None:
        return
    try:
        callback(item)
    except Exception as e:
        logger.error("Position callback error: %s", e)
