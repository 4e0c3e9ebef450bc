"""Farebox Domain Layer - Core meter models and enums."""

from .models import MeterPhase, MeterSnapshot, Position

__all__ = [
    "MeterPhase",
    "MeterSnapshot",
    "Position",
]
