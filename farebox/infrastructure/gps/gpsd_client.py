"""Async gpsd client with auto-reconnect and graceful degradation."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import AsyncIterator, Optional

from ...domain.models import Position
from .distance import destination_point
from .source import PositionErrorCode, PositionSourceError, StreamItem, StreamPositionSource

logger = logging.getLogger(__name__)


@dataclass
class GPSConfig:
    """GPS daemon connection configuration."""

    host: str = "localhost"
    port: int = 2947
    reconnect_delay: float = 5.0
    timeout: float = 10.0
    max_reconnect_attempts: int = 0  # 0 = infinite


@dataclass
class GPSState:
    """Internal GPS state tracking."""

    connected: bool = False
    fix_count: int = 0
    error_count: int = 0
    last_fix: Optional[datetime] = None


class AsyncGPSClient:
    """
    Async gpsd client with auto-reconnect.

    Features:
    - Non-blocking async connection
    - Automatic reconnection on disconnect
    - Recoverable errors are yielded, not raised
    - Graceful degradation when GPS unavailable

    Usage:
        client = AsyncGPSClient()
        meter = FareMeter(clock, client.as_source())
    """

    def __init__(self, config: GPSConfig | None = None) -> None:
        self.config = config or GPSConfig()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._running = False
        self._state = GPSState()
        self._reconnect_attempts = 0

    @property
    def is_connected(self) -> bool:
        """Check if connected to gpsd."""
        return self._state.connected

    @property
    def state(self) -> GPSState:
        """Get internal state for diagnostics."""
        return self._state

    def as_source(self) -> StreamPositionSource:
        """Expose this client through the subscribe/unsubscribe contract."""
        return StreamPositionSource(self.stream_positions, name="gpsd")

    async def connect(self) -> bool:
        """
        Connect to gpsd daemon.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port),
                timeout=self.config.timeout,
            )

            # Enable JSON streaming mode
            self._writer.write(b'?WATCH={"enable":true,"json":true}\n')
            await self._writer.drain()

            self._state.connected = True
            self._reconnect_attempts = 0
            logger.info("Connected to gpsd at %s:%d", self.config.host, self.config.port)
            return True

        except asyncio.TimeoutError:
            logger.warning("GPS connection timeout to %s:%d", self.config.host, self.config.port)
            self._state.error_count += 1
            return False

        except ConnectionRefusedError:
            logger.warning("GPS connection refused - is gpsd running?")
            self._state.error_count += 1
            return False

        except OSError as e:
            logger.warning("GPS connection failed: %s", e)
            self._state.error_count += 1
            return False

    async def disconnect(self) -> None:
        """Disconnect from gpsd gracefully."""
        writer = self._writer
        self._reader = None
        self._writer = None
        self._state.connected = False

        if writer:
            try:
                writer.write(b'?WATCH={"enable":false}\n')
                await writer.drain()
                writer.close()
                await writer.wait_closed()
            except OSError as e:
                logger.debug("GPS disconnect error: %s", e)

    async def stream_positions(self) -> AsyncIterator[StreamItem]:
        """
        Async generator of fixes and recoverable errors.

        Handles reconnection automatically. Malformed lines are skipped. Ends only
        when the consumer closes it or max_reconnect_attempts is exhausted.
        """
        self._running = True

        try:
            while self._running:
                if not self._reader:
                    if not await self.connect():
                        self._reconnect_attempts += 1
                        yield PositionSourceError(
                            PositionErrorCode.POSITION_UNAVAILABLE,
                            f"gpsd unreachable at {self.config.host}:{self.config.port}",
                        )

                        if (
                            self.config.max_reconnect_attempts > 0
                            and self._reconnect_attempts >= self.config.max_reconnect_attempts
                        ):
                            logger.error("GPS max reconnect attempts reached, stopping")
                            break

                        await asyncio.sleep(self.config.reconnect_delay)
                        continue

                try:
                    line = await asyncio.wait_for(
                        self._reader.readline(),  # type: ignore[union-attr]
                        timeout=self.config.timeout,
                    )

                    if not line:
                        raise ConnectionError("GPS connection closed by server")

                    data = json.loads(line.decode("utf-8"))
                    if not isinstance(data, dict):
                        logger.warning("GPS message is not an object: %r", line[:80])
                        continue

                    # Handle TPV (Time-Position-Velocity) messages
                    if data.get("class") == "TPV":
                        pos = self._parse_tpv(data)
                        if pos:
                            self._state.fix_count += 1
                            self._state.last_fix = datetime.now(UTC)
                            yield pos
                        elif data.get("mode", 0) <= 1:
                            yield PositionSourceError(
                                PositionErrorCode.POSITION_UNAVAILABLE, "no GPS fix"
                            )

                except asyncio.TimeoutError:
                    self._state.error_count += 1
                    yield PositionSourceError(
                        PositionErrorCode.TIMEOUT,
                        f"no data from gpsd within {self.config.timeout:.1f}s",
                    )

                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    logger.warning("GPS message parse error: %s", e)

                except OSError as e:
                    logger.warning("GPS stream error: %s, reconnecting...", e)
                    self._state.error_count += 1
                    await self.disconnect()
                    await asyncio.sleep(self.config.reconnect_delay)
        finally:
            self._running = False
            await self.disconnect()

    def _parse_tpv(self, data: dict) -> Optional[Position]:
        """
        Parse TPV (Time-Position-Velocity) message from gpsd.

        Args:
            data: JSON dict from gpsd TPV message

        Returns:
            Position if a 2D/3D fix with valid lat/lon is present, None otherwise
        """
        try:
            if "lat" not in data or "lon" not in data:
                return None

            # Mode: 0=unknown, 1=no fix, 2=2D, 3=3D
            if data.get("mode", 0) < 2:
                return None

            return Position(
                lat=float(data["lat"]),
                lng=float(data["lon"]),
                speed=data.get("speed"),
                heading=data.get("track"),
                accuracy=data.get("eph"),
            )

        except (KeyError, ValueError, TypeError) as e:
            logger.error("TPV parse error: %s - data: %s", e, data)
            return None


class MockGPSClient(AsyncGPSClient):
    """
    Mock GPS client for demos and tests.

    Drives along a gently curving road at a constant speed.
    """

    def __init__(
        self,
        start_lat: float = 35.6762,  # Tokyo
        start_lng: float = 139.6503,
        speed_mps: float = 10.0,
        heading: float = 45.0,
        interval: float = 1.0,
        turn_per_step: float = 2.0,
        report_speed: bool = True,
    ) -> None:
        super().__init__()
        self._lat = start_lat
        self._lng = start_lng
        self._speed = speed_mps
        self._heading = heading
        self._interval = interval
        self._turn = turn_per_step
        self._report_speed = report_speed

    async def connect(self) -> bool:
        """Mock always connects."""
        self._state.connected = True
        logger.info("Mock GPS connected (simulated)")
        return True

    async def stream_positions(self) -> AsyncIterator[StreamItem]:
        """Yield a fix every interval seconds along the route."""
        await self.connect()
        self._running = True

        try:
            while self._running:
                pos = Position(
                    lat=self._lat,
                    lng=self._lng,
                    speed=self._speed if self._report_speed else None,
                    heading=self._heading,
                    accuracy=5.0,
                )
                self._state.fix_count += 1
                self._state.last_fix = datetime.now(UTC)
                yield pos

                await asyncio.sleep(self._interval)
                self._lat, self._lng = destination_point(
                    self._lat, self._lng, self._heading, self._speed * self._interval
                )
                self._heading = (self._heading + self._turn) % 360
        finally:
            self._running = False
            self._state.connected = False
