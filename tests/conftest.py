"""Shared fakes: a hand-driven clock and a push-style position source."""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from farebox.domain.models import Position
from farebox.infrastructure.gps.source import PositionErrorCode, PositionSourceError


class FakeTimer:
    def __init__(self, interval_ms: float, callback: Callable[[], None], due: float) -> None:
        self.interval_ms = interval_ms
        self.callback = callback
        self.due = due
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire_late(self) -> None:
        """Deliver a tick that was already in flight when cancel() ran."""
        self.callback()


class FakeClock:
    """Millisecond clock that only moves when advance() is called."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self._now = start
        self.timers: list[FakeTimer] = []

    def now(self) -> float:
        return self._now

    def schedule_repeating(self, interval_ms: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval_ms, callback, self._now + interval_ms)
        self.timers.append(timer)
        return timer

    @property
    def active_timers(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, ms: float) -> None:
        target = self._now + ms
        while True:
            due = [t for t in self.active_timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._now = timer.due
            timer.due += timer.interval_ms
            timer.callback()
        self._now = target


class FakeSubscription:
    def __init__(self, on_fix, on_error) -> None:
        self.on_fix = on_fix
        self.on_error = on_error
        self.active = True

    def cancel(self) -> None:
        self.active = False


class FakePositionSource:
    """Position source whose fixes are pushed by the test."""

    def __init__(self) -> None:
        self.subscriptions: list[FakeSubscription] = []

    def subscribe(self, on_fix, on_error=None):
        sub = FakeSubscription(on_fix, on_error)
        self.subscriptions.append(sub)
        return sub.cancel

    @property
    def active(self) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if s.active]

    def emit(self, lat: float, lng: float, speed: Optional[float] = None) -> Position:
        fix = Position(lat=lat, lng=lng, speed=speed)
        for sub in self.active:
            sub.on_fix(fix)
        return fix

    def fail(self, code: PositionErrorCode = PositionErrorCode.TIMEOUT) -> None:
        error = PositionSourceError(code)
        for sub in self.active:
            if sub.on_error:
                sub.on_error(error)


class BrokenSource:
    def subscribe(self, on_fix, on_error=None):
        raise PositionSourceError(PositionErrorCode.PERMISSION_DENIED)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> FakePositionSource:
    return FakePositionSource()


@pytest.fixture
def broken_source() -> BrokenSource:
    return BrokenSource()
