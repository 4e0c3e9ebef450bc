"""
Fare Meter
==========

Lifecycle controller for a live trip meter. Gates a repeating clock tick and
a position subscription behind an idle / running / paused state machine and
keeps the fare in step with elapsed time and distance.

Usage:
    meter = FareMeter(AsyncioClock(), MockGPSClient().as_source())

    async with meter.running():
        await asyncio.sleep(30)
        print(meter.snapshot().estimated_fare)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Callable, Optional

from ..core.events import EventBus, EventType
from ..core.tariff import DEFAULT_TARIFF, Tariff, calculate_fare
from ..domain.models import MeterPhase, MeterSnapshot, Position
from ..infrastructure.clock import CancelHandle, ClockSource
from ..infrastructure.gps.source import PositionSource, PositionSourceError, Unsubscribe
from .accumulator import ElapsedClock
from .tracker import PositionTracker

if TYPE_CHECKING:
    from ..config import FareboxConfig

logger = logging.getLogger(__name__)

Hook = Callable[[], None]
ChangeHook = Callable[[MeterSnapshot], None]


class FareMeter:
    """
    Live fare meter.

    start/pause/resume/stop always return synchronously and never raise for
    an invalid transition; they return False instead. start/resume also
    return False, with the phase unchanged, when the clock cannot schedule
    a tick (for example when no event loop is running). Leaving the running
    phase cancels the timer and the position subscription before returning,
    and callbacks from an earlier running interval are dropped.
    """

    def __init__(
        self,
        clock: ClockSource,
        source: Optional[PositionSource] = None,
        tariff: Tariff = DEFAULT_TARIFF,
        *,
        tick_interval_ms: float = 1000,
        min_movement_meters: float = 0.0,
        max_jump_meters: Optional[float] = None,
        on_start: Optional[Hook] = None,
        on_pause: Optional[Hook] = None,
        on_stop: Optional[Hook] = None,
        on_change: Optional[ChangeHook] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.clock = clock
        self.source = source
        self.tariff = tariff
        self.tick_interval_ms = tick_interval_ms
        self.on_start = on_start
        self.on_pause = on_pause
        self.on_stop = on_stop
        self.on_change = on_change
        self.bus = bus

        self._phase = MeterPhase.IDLE
        self._elapsed = ElapsedClock()
        self._tracker = PositionTracker(min_movement_meters, max_jump_meters)
        self._fare = calculate_fare(tariff, 0, 0)
        self._timer: Optional[CancelHandle] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._generation = 0
        self._in_transition = False
        self.last_trip: Optional[MeterSnapshot] = None

    @classmethod
    def from_config(
        cls,
        cfg: FareboxConfig,
        clock: ClockSource,
        source: Optional[PositionSource] = None,
        **kwargs,
    ) -> FareMeter:
        """Build a meter from the tariff, clock and gps sections of cfg."""
        return cls(
            clock,
            source,
            cfg.tariff,
            tick_interval_ms=cfg.clock.tick_interval_ms,
            min_movement_meters=cfg.gps.min_movement_meters,
            max_jump_meters=cfg.gps.max_jump_meters,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def phase(self) -> MeterPhase:
        return self._phase

    @property
    def estimated_fare(self) -> int:
        return self._fare

    @property
    def route(self) -> list[Position]:
        return list(self._tracker.route)

    @property
    def is_subscribed(self) -> bool:
        """True while a timer or position subscription is held."""
        return self._timer is not None or self._unsubscribe is not None

    def snapshot(self) -> MeterSnapshot:
        return MeterSnapshot(
            phase=self._phase,
            estimated_fare=self._fare,
            elapsed_millis=self._elapsed.elapsed_millis,
            total_distance_meters=self._tracker.total_distance_meters,
            current_speed_kmh=self._tracker.current_speed_kmh,
            started_at=self._elapsed.started_at,
            last_position=self._tracker.last_position,
            route_point_count=len(self._tracker.route),
            gps_error_count=self._tracker.error_count,
            gps_error=str(self._tracker.last_error) if self._tracker.last_error is not None else None,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Start a new trip from idle, or resume a paused one."""
        if self._phase is MeterPhase.PAUSED:
            return self.resume()
        if self._phase is MeterPhase.RUNNING or not self._enter_transition("start"):
            return False

        try:
            now = self.clock.now()
            self._tracker.reset()
            self._elapsed.start(now)
            self._recompute()
            self._phase = MeterPhase.RUNNING
            if not self._acquire_or_rollback(MeterPhase.IDLE):
                return False
            logger.info("Meter started (base fare %s)", self._fare)
            self._call_hook(self.on_start, "on_start")
            self._publish(EventType.METER_STARTED)
        finally:
            self._in_transition = False
        self._notify_change()
        return True

    def resume(self) -> bool:
        """Continue a paused trip; accumulators are kept."""
        if self._phase is not MeterPhase.PAUSED or not self._enter_transition("resume"):
            return False

        try:
            self._elapsed.resume(self.clock.now())
            self._tracker.reseed()
            self._phase = MeterPhase.RUNNING
            if not self._acquire_or_rollback(MeterPhase.PAUSED):
                return False
            logger.info("Meter resumed at %d ms", self._elapsed.elapsed_millis)
            self._call_hook(self.on_start, "on_start")
            self._publish(EventType.METER_RESUMED)
        finally:
            self._in_transition = False
        self._notify_change()
        return True

    def pause(self) -> bool:
        """Freeze the trip and release the clock and position subscriptions."""
        if self._phase is not MeterPhase.RUNNING or not self._enter_transition("pause"):
            return False

        try:
            self._elapsed.pause(self.clock.now())
            self._recompute()
            self._release()
            self._phase = MeterPhase.PAUSED
            logger.info("Meter paused at %d ms, fare %d", self._elapsed.elapsed_millis, self._fare)
            self._call_hook(self.on_pause, "on_pause")
            self._publish(EventType.METER_PAUSED)
        finally:
            self._in_transition = False
        self._notify_change()
        return True

    def stop(self) -> bool:
        """End the trip and reset every accumulator."""
        if self._phase is MeterPhase.IDLE or not self._enter_transition("stop"):
            return False

        try:
            self._release()
            if self._phase is MeterPhase.RUNNING:
                self._elapsed.pause(self.clock.now())
                self._recompute()
            final = self.snapshot().model_copy(update={"phase": MeterPhase.IDLE})
            self.last_trip = final

            self._elapsed.reset()
            self._tracker.reset()
            self._recompute()
            self._phase = MeterPhase.IDLE
            logger.info(
                "Meter stopped: fare %d, %d ms, %.0f m",
                final.estimated_fare,
                final.elapsed_millis,
                final.total_distance_meters,
            )
            self._call_hook(self.on_stop, "on_stop")
            self._publish(EventType.METER_STOPPED, final)
        finally:
            self._in_transition = False
        self._notify_change()
        return True

    @asynccontextmanager
    async def running(self) -> AsyncIterator[FareMeter]:
        """Run the meter for the duration of the block; always stops on exit."""
        self.start()
        try:
            yield self
        finally:
            self.stop()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def _acquire_or_rollback(self, previous: MeterPhase) -> bool:
        """Acquire subscriptions, or restore the previous phase and return False."""
        try:
            self._acquire()
        except Exception as e:
            self._rollback(previous)
            logger.error("Could not enter running phase: %s", e)
            return False
        except BaseException:
            self._rollback(previous)
            raise
        return True

    def _rollback(self, previous: MeterPhase) -> None:
        self._release()
        if previous is MeterPhase.PAUSED:
            self._elapsed.pause(self.clock.now())
        else:
            self._elapsed.reset()
        self._recompute()
        self._phase = previous

    def _acquire(self) -> None:
        self._generation += 1
        generation = self._generation

        self._timer = self.clock.schedule_repeating(
            self.tick_interval_ms, lambda: self._on_tick(generation)
        )

        if self.source is None:
            logger.warning("No position source - fare accrues from time only")
            self._publish(EventType.GPS_UNAVAILABLE)
            return

        try:
            self._unsubscribe = self.source.subscribe(
                lambda fix: self._on_fix(generation, fix),
                lambda error: self._on_error(generation, error),
            )
        except Exception as e:
            logger.warning("Position source unavailable (%s) - fare accrues from time only", e)
            self._publish(EventType.GPS_UNAVAILABLE, str(e))

    def _release(self) -> None:
        self._generation += 1
        timer, self._timer = self._timer, None
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if timer is not None:
            try:
                timer.cancel()
            except Exception as e:
                logger.error("Timer cancel failed: %s", e)
        if unsubscribe is not None:
            try:
                unsubscribe()
            except Exception as e:
                logger.error("Position unsubscribe failed: %s", e)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._phase is MeterPhase.RUNNING

    def _on_tick(self, generation: int) -> None:
        if not self._is_current(generation):
            logger.debug("Dropped late tick from interval %d", generation)
            return
        self._elapsed.tick(self.clock.now())
        self._recompute()
        self._notify_change()

    def _on_fix(self, generation: int, fix: Position) -> None:
        if not self._is_current(generation):
            logger.debug("Dropped late fix from interval %d", generation)
            return
        self._tracker.apply(fix)
        self._recompute()
        self._publish(EventType.GPS_FIX, fix)
        self._notify_change()

    def _on_error(self, generation: int, error: PositionSourceError) -> None:
        if not self._is_current(generation):
            return
        self._tracker.record_error(error)
        logger.warning("Position fix failed: %s", error)
        self._publish(EventType.GPS_ERROR, error)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _recompute(self) -> None:
        self._fare = calculate_fare(
            self.tariff,
            self._elapsed.elapsed_millis,
            self._tracker.total_distance_meters,
        )

    def _enter_transition(self, name: str) -> bool:
        if self._in_transition:
            logger.warning("Ignored re-entrant %s() during a transition", name)
            return False
        self._in_transition = True
        return True

    def _call_hook(self, hook: Optional[Callable[..., None]], name: str, *args) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception as e:
            logger.error("Meter hook %s failed: %s", name, e)

    def _notify_change(self) -> None:
        if self.on_change is not None:
            self._call_hook(self.on_change, "on_change", self.snapshot())

    def _publish(self, event_type: EventType, data: object = None) -> None:
        if self.bus is None:
            return
        self.bus.publish(event_type, data if data is not None else self.snapshot())
