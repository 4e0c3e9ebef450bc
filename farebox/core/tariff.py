"""
Tariff calculator.

The fare is a pure function of elapsed running time and accumulated distance:

    fare = round(base_fare + minutes * per_minute_rate + km * per_kilometer_rate)

Rounding is half away from zero to whole currency units.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field


class Tariff(BaseModel):
    """Configured base fare, time rate and distance rate."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_fare: float = Field(1000, ge=0, alias="baseFare")
    per_minute_rate: float = Field(50, ge=0, alias="perMinuteRate")
    per_kilometer_rate: float = Field(100, ge=0, alias="perKilometerRate")


DEFAULT_TARIFF = Tariff()


def round_fare(value: float) -> int:
    """Round to the nearest integer unit, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def calculate_fare(
    tariff: Tariff, elapsed_millis: float, distance_meters: float
) -> int:
    """Fare for a trip that has run elapsed_millis and covered distance_meters."""
    raw = (
        tariff.base_fare
        + (elapsed_millis / 60000) * tariff.per_minute_rate
        + (distance_meters / 1000) * tariff.per_kilometer_rate
    )
    return round_fare(raw)


def project_fare(tariff: Tariff, minutes: float, km: float) -> int:
    """Quote a fare up front from an expected duration and distance."""
    if minutes < 0 or km < 0:
        raise ValueError("minutes and km must be non-negative")
    return calculate_fare(tariff, minutes * 60000, km * 1000)
