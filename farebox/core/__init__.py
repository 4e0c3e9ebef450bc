"""Farebox Core - tariff calculation and the event bus."""

from .events import Event, EventBus, EventType
from .tariff import DEFAULT_TARIFF, Tariff, calculate_fare, project_fare, round_fare

__all__ = [
    "DEFAULT_TARIFF",
    "Event",
    "EventBus",
    "EventType",
    "Tariff",
    "calculate_fare",
    "project_fare",
    "round_fare",
]
