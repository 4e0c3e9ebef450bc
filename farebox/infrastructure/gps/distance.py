"""
GPS Distance Tracker
====================

Tracks total distance traveled using GPS position fixes.
Uses Haversine formula for accurate distance calculation.

Usage:
    tracker = DistanceTracker()

    for fix in fixes:
        moved = tracker.update(fix)
        print(f"Moved {moved:.1f}m, total: {tracker.total_meters:.0f}m")
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ...domain.models import Position

EARTH_RADIUS_METERS = 6371000


@dataclass
class DistanceTracker:
    """
    Accumulate distance between consecutive position fixes.

    The first fix (or the first one after release_anchor) only seeds the
    anchor position. Optional filters drop GPS jitter and glitches; a
    filtered fix keeps the previous anchor.
    """

    total_meters: float = 0.0
    last_position: Optional[Position] = None
    min_movement_meters: float = 0.0  # 0 = accept every movement
    max_jump_meters: Optional[float] = None  # None = no glitch filter

    def update(self, position: Position) -> float:
        """
        Update tracker with a new fix.

        Args:
            position: Fix with lat/lng in degrees

        Returns:
            Distance added in meters (0 if seeding or filtered)
        """
        if self.last_position is None:
            self.last_position = position
            return 0.0

        distance = haversine(
            self.last_position.lat, self.last_position.lng, position.lat, position.lng
        )

        if distance < self.min_movement_meters:
            return 0.0

        if self.max_jump_meters is not None and distance > self.max_jump_meters:
            return 0.0

        self.total_meters += distance
        self.last_position = position
        return distance

    def release_anchor(self) -> None:
        """Forget the anchor so the next fix seeds again. Totals are kept."""
        self.last_position = None

    def reset(self) -> None:
        """Reset tracker to initial state."""
        self.total_meters = 0.0
        self.last_position = None


def haversine(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate distance between two points using Haversine formula.

    Args:
        lat1, lng1: First point coordinates (degrees)
        lat2, lng2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def calculate_distance(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Convenience alias for haversine, in meters."""
    return haversine(lat1, lng1, lat2, lng2)


def destination_point(
    lat: float, lng: float, bearing: float, distance_m: float
) -> tuple[float, float]:
    """
    Project a point along a bearing on the sphere.

    Args:
        lat, lng: Start coordinates (degrees)
        bearing: Degrees from true north
        distance_m: Distance to travel in meters

    Returns:
        (lat, lng) of the destination in degrees
    """
    delta = distance_m / EARTH_RADIUS_METERS
    theta = math.radians(bearing)
    lat1 = math.radians(lat)
    lng1 = math.radians(lng)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    )
    lng2 = lng1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )

    return math.degrees(lat2), (math.degrees(lng2) + 540) % 360 - 180
