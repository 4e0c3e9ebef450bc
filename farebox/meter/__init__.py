"""Farebox Meter - lifecycle controller, elapsed clock and position tracker."""

from .accumulator import ElapsedClock
from .controller import FareMeter
from .tracker import PositionTracker

__all__ = [
    "ElapsedClock",
    "FareMeter",
    "PositionTracker",
]
