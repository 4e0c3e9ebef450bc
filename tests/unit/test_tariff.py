"""Tariff calculator tests."""

import pytest
from pydantic import ValidationError

from farebox.core.tariff import DEFAULT_TARIFF, Tariff, calculate_fare, project_fare, round_fare


def test_default_constants():
    assert DEFAULT_TARIFF.base_fare == 1000
    assert DEFAULT_TARIFF.per_minute_rate == 50
    assert DEFAULT_TARIFF.per_kilometer_rate == 100


def test_base_fare_at_zero():
    assert calculate_fare(DEFAULT_TARIFF, 0, 0) == 1000


def test_two_minutes_three_km():
    assert calculate_fare(DEFAULT_TARIFF, 120_000, 3000) == 1400


def test_partial_units():
    # 1000 + 0.5 min * 50 + 0.25 km * 100 = 1050
    assert calculate_fare(DEFAULT_TARIFF, 30_000, 250) == 1050


def test_rounds_half_away_from_zero():
    assert round_fare(1000.5) == 1001
    assert round_fare(1002.5) == 1003
    assert round_fare(1002.49) == 1002
    assert round_fare(-0.5) == -1


def test_rounding_applies_to_total():
    tariff = Tariff(base_fare=2.5, per_minute_rate=0, per_kilometer_rate=0)
    assert calculate_fare(tariff, 0, 0) == 3


def test_camel_case_aliases():
    tariff = Tariff.model_validate({"baseFare": 700, "perMinuteRate": 20, "perKilometerRate": 300})
    assert tariff.base_fare == 700
    assert calculate_fare(tariff, 60_000, 1000) == 1020


def test_negative_rate_rejected():
    with pytest.raises(ValidationError):
        Tariff(per_minute_rate=-1)


def test_project_fare():
    assert project_fare(DEFAULT_TARIFF, minutes=2, km=3) == 1400
    assert project_fare(DEFAULT_TARIFF, minutes=0, km=0) == 1000


def test_project_fare_rejects_negative():
    with pytest.raises(ValueError):
        project_fare(DEFAULT_TARIFF, minutes=-1, km=2)
