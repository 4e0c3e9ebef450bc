"""Farebox Domain Models - Pydantic models for meter entities."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

MPS_TO_KMH = 3.6


class MeterPhase(str, Enum):
    """Lifecycle phase of a fare meter."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class Position(BaseModel):
    """A single position fix reported by a location source."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., allow_inf_nan=False)
    lng: float = Field(..., allow_inf_nan=False)
    speed: float | None = Field(None, allow_inf_nan=False)  # m/s
    heading: float | None = None  # degrees from true north
    accuracy: float | None = None  # metres
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def speed_kmh(self) -> float:
        """Reported speed in km/h, 0 when the source gave none."""
        if not self.speed:
            return 0.0
        return self.speed * MPS_TO_KMH


class MeterSnapshot(BaseModel):
    """Read-only view of a meter, handed to display surfaces."""

    model_config = ConfigDict(frozen=True)

    phase: MeterPhase = MeterPhase.IDLE
    estimated_fare: int = 0
    elapsed_millis: int = 0
    total_distance_meters: float = 0.0
    current_speed_kmh: float = 0.0
    started_at: float | None = None  # clock milliseconds
    last_position: Position | None = None
    route_point_count: int = 0
    gps_error_count: int = 0
    gps_error: str | None = None  # cleared by the next good fix

    @property
    def elapsed_minutes(self) -> float:
        return self.elapsed_millis / 60000

    @property
    def total_distance_km(self) -> float:
        return self.total_distance_meters / 1000

    @property
    def is_running(self) -> bool:
        return self.phase is MeterPhase.RUNNING
