"""GPS infrastructure - distance math, gpsd client and position sources."""

from .distance import DistanceTracker, calculate_distance, destination_point, haversine
from .gpsd_client import AsyncGPSClient, GPSConfig, MockGPSClient
from .source import (
    PositionErrorCode,
    PositionSource,
    PositionSourceError,
    StreamPositionSource,
)

__all__ = [
    "AsyncGPSClient",
    "GPSConfig",
    "MockGPSClient",
    "DistanceTracker",
    "calculate_distance",
    "destination_point",
    "haversine",
    "PositionErrorCode",
    "PositionSource",
    "PositionSourceError",
    "StreamPositionSource",
]
