"""
Farebox Event Bus - Async Pub/Sub for meter notifications
==========================================================

Lets display surfaces, haptics or loggers follow a meter without the meter
knowing about them. The meter publishes fire-and-forget events from its
synchronous lifecycle calls; handlers run later on the event loop, in
subscription order.

Usage:
    bus = EventBus()

    @bus.on(EventType.METER_STOPPED)
    async def handle_stop(event: Event):
        print(f"Final fare: {event.data.estimated_fare}")

    await bus.start()
    meter = FareMeter(clock, source, bus=bus)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Coroutine, TypeAlias

logger = logging.getLogger(__name__)

AsyncHandler: TypeAlias = Callable[["Event"], Coroutine[Any, Any, None]]


class EventType(Enum):
    """Events published by meters and position sources."""

    # Lifecycle
    METER_STARTED = auto()
    METER_RESUMED = auto()
    METER_PAUSED = auto()
    METER_STOPPED = auto()

    # GPS
    GPS_FIX = auto()
    GPS_ERROR = auto()
    GPS_UNAVAILABLE = auto()


@dataclass(frozen=True)
class Event:
    type: EventType
    data: Any = None
    timestamp: float = field(default_factory=time.time)


class EventBus:
    """
    Queue-backed event bus.

    Events are only accepted while the bus is running. Publishing to a bus
    that was never started, or has been stopped, drops the event and counts
    it in `dropped`.
    """

    def __init__(self, max_history: int = 500) -> None:
        self._handlers: dict[EventType, list[AsyncHandler]] = {}
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._running = False
        self._task: asyncio.Task | None = None
        self._history: deque[Event] = deque(maxlen=max_history)
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, event_type: EventType, handler: AsyncHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed to %s: %s", event_type.name, handler.__name__)

    def unsubscribe(self, event_type: EventType, handler: AsyncHandler) -> bool:
        """Remove a handler. Returns True if found."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def on(self, event_type: EventType) -> Callable[[AsyncHandler], AsyncHandler]:
        """Decorator form of subscribe()."""
        def decorator(handler: AsyncHandler) -> AsyncHandler:
            self.subscribe(event_type, handler)
            return handler
        return decorator

    def publish(self, event_type: EventType, data: Any = None) -> Event | None:
        """
        Queue an event without waiting for handlers.

        Safe to call from synchronous code on the loop's own thread. Returns
        None when the bus is not running and the event was dropped.
        """
        if not self._running:
            self.dropped += 1
            logger.debug("Event bus not running, dropped %s", event_type.name)
            return None

        event = Event(type=event_type, data=data)
        self._queue.put_nowait(event)
        return event

    async def start(self) -> None:
        """Start the event processing loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._process_loop())
        logger.info("Event bus started")

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop accepting events, drain what is queued, then stop processing."""
        self._running = False

        if self._task:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Event queue drain timeout, forcing stop")

            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Event bus stopped")

    async def _process_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        self._history.append(event)

        for handler in list(self._handlers.get(event.type, [])):
            try:
                await handler(event)
            except Exception as e:
                logger.error("Handler %s failed on %s: %s", handler.__name__, event.type.name, e)

    def get_history(self, event_type: EventType | None = None, limit: int = 100) -> list[Event]:
        """Recent events, oldest first, optionally filtered by type."""
        events = [e for e in self._history if event_type is None or e.type is event_type]
        return events[-limit:]
