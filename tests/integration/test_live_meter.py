"""Integration tests: a meter on the real event loop with the mock drive."""

from __future__ import annotations

import asyncio

import pytest

from farebox.core.events import EventBus, EventType
from farebox.core.tariff import calculate_fare
from farebox.domain.models import MeterPhase
from farebox.infrastructure.clock import AsyncioClock
from farebox.infrastructure.gps.gpsd_client import MockGPSClient
from farebox.meter import FareMeter


@pytest.mark.asyncio
async def test_running_context_accrues_and_releases():
    source = MockGPSClient(speed_mps=30.0, interval=0.02).as_source()
    meter = FareMeter(AsyncioClock(), source, tick_interval_ms=20)

    async with meter.running():
        await asyncio.sleep(0.25)
        live = meter.snapshot()
        assert live.phase is MeterPhase.RUNNING
        assert live.elapsed_millis > 0
        assert live.total_distance_meters > 0
        assert live.current_speed_kmh == pytest.approx(108.0)

    assert meter.phase is MeterPhase.IDLE
    assert not meter.is_subscribed
    for _ in range(5):
        await asyncio.sleep(0)
    assert source.active_subscriptions == 0

    trip = meter.last_trip
    assert trip.estimated_fare == calculate_fare(
        meter.tariff, trip.elapsed_millis, trip.total_distance_meters
    )


@pytest.mark.asyncio
async def test_context_stops_on_error():
    meter = FareMeter(AsyncioClock(), None, tick_interval_ms=20)

    with pytest.raises(RuntimeError):
        async with meter.running():
            await asyncio.sleep(0.05)
            raise RuntimeError("display crashed")

    assert meter.phase is MeterPhase.IDLE
    assert not meter.is_subscribed


@pytest.mark.asyncio
async def test_pause_on_live_loop_freezes_metrics():
    clock = AsyncioClock()
    source = MockGPSClient(speed_mps=15.0, interval=0.02).as_source()
    meter = FareMeter(clock, source, tick_interval_ms=20)

    meter.start()
    await asyncio.sleep(0.15)
    meter.pause()
    frozen = meter.snapshot()

    await asyncio.sleep(0.15)
    assert meter.snapshot() == frozen
    assert source.active_subscriptions == 0

    resumed_at = clock.now()
    meter.resume()
    await asyncio.sleep(0.1)
    meter.pause()
    ran_for = clock.now() - resumed_at
    resumed = meter.snapshot()
    meter.stop()

    assert resumed.elapsed_millis >= frozen.elapsed_millis
    assert resumed.elapsed_millis - frozen.elapsed_millis <= ran_for + 1


@pytest.mark.asyncio
async def test_bus_sees_fixes_and_lifecycle():
    bus = EventBus()
    await bus.start()
    source = MockGPSClient(interval=0.02).as_source()
    meter = FareMeter(AsyncioClock(), source, tick_interval_ms=20, bus=bus)

    async with meter.running():
        await asyncio.sleep(0.1)
    await bus.stop()

    assert bus.get_history(EventType.METER_STARTED)
    assert bus.get_history(EventType.GPS_FIX)
    assert bus.get_history()[-1].type is EventType.METER_STOPPED
