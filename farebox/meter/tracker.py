"""Position tracker: distance, speed and route of the current trip."""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.models import Position
from ..infrastructure.gps.distance import DistanceTracker
from ..infrastructure.gps.source import PositionSourceError

logger = logging.getLogger(__name__)


class PositionTracker:
    """
    Fold position fixes into trip metrics.

    Speed is taken from the fix as reported by the source; it is never
    derived from consecutive fixes, so a source without speed reads 0 km/h.
    """

    def __init__(
        self,
        min_movement_meters: float = 0.0,
        max_jump_meters: Optional[float] = None,
    ) -> None:
        self._distance = DistanceTracker(
            min_movement_meters=min_movement_meters,
            max_jump_meters=max_jump_meters,
        )
        self.current_speed_kmh: float = 0.0
        self.route: list[Position] = []
        self.error_count = 0
        self.last_error: Optional[PositionSourceError] = None

    @property
    def total_distance_meters(self) -> float:
        return self._distance.total_meters

    @property
    def last_position(self) -> Optional[Position]:
        return self._distance.last_position

    def apply(self, fix: Position) -> float:
        """Apply one fix. Returns meters added to the trip."""
        added = self._distance.update(fix)
        if self._distance.last_position is fix:
            self.route.append(fix)
        self.current_speed_kmh = fix.speed_kmh
        self.last_error = None
        return added

    def record_error(self, error: PositionSourceError) -> None:
        """Count a source error; it stays visible until the next good fix."""
        self.error_count += 1
        self.last_error = error

    def reseed(self) -> None:
        """Next fix only seeds the anchor; distance so far is kept."""
        self._distance.release_anchor()

    def reset(self) -> None:
        self._distance.reset()
        self.current_speed_kmh = 0.0
        self.route = []
        self.error_count = 0
        self.last_error = None
