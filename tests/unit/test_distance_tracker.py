"""
Distance Tracker Unit Tests
===========================

Tests for haversine distance and the DistanceTracker accumulator.
"""

import pytest

from farebox.domain.models import Position
from farebox.infrastructure.gps.distance import (
    DistanceTracker,
    calculate_distance,
    destination_point,
    haversine,
)


def fix(lat: float, lng: float) -> Position:
    return Position(lat=lat, lng=lng)


class TestDistanceTracker:
    """Tests for DistanceTracker class."""

    def test_first_point_returns_zero(self):
        """First point should only seed the anchor."""
        tracker = DistanceTracker()
        distance = tracker.update(fix(35.6762, 139.6503))
        assert distance == 0.0
        assert tracker.total_meters == 0.0
        assert tracker.last_position is not None

    def test_second_point_calculates_distance(self):
        tracker = DistanceTracker()
        tracker.update(fix(41.0, 29.0))
        distance = tracker.update(fix(41.001, 29.0))  # ~111 meters north

        assert 100 < distance < 120
        assert tracker.total_meters == distance

    def test_no_filter_by_default(self):
        """Tiny movements count unless a jitter threshold is set."""
        tracker = DistanceTracker()
        tracker.update(fix(41.0, 29.0))
        distance = tracker.update(fix(41.00001, 29.0))
        assert 0 < distance < 2

    def test_jitter_filter(self):
        """Small movements should be ignored when filtered."""
        tracker = DistanceTracker(min_movement_meters=10)
        tracker.update(fix(41.0, 29.0))

        distance = tracker.update(fix(41.00001, 29.0))
        assert distance == 0.0
        assert tracker.total_meters == 0.0
        assert tracker.last_position.lat == 41.0

    def test_large_jump_ignored(self):
        """Glitches beyond max_jump_meters should be ignored."""
        tracker = DistanceTracker(max_jump_meters=1000)
        tracker.update(fix(41.0, 29.0))

        distance = tracker.update(fix(41.1, 29.0))
        assert distance == 0.0

    def test_cumulative_distance(self):
        tracker = DistanceTracker()

        tracker.update(fix(41.0, 29.0))
        d1 = tracker.update(fix(41.001, 29.0))  # North
        d2 = tracker.update(fix(41.001, 29.001))  # East
        d3 = tracker.update(fix(41.0, 29.001))  # South

        assert abs(tracker.total_meters - (d1 + d2 + d3)) < 0.01
        assert tracker.last_position.lng == 29.001

    def test_release_anchor_keeps_total(self):
        tracker = DistanceTracker()
        tracker.update(fix(41.0, 29.0))
        tracker.update(fix(41.001, 29.0))
        total = tracker.total_meters

        tracker.release_anchor()
        assert tracker.update(fix(42.0, 30.0)) == 0.0
        assert tracker.total_meters == total

    def test_reset(self):
        tracker = DistanceTracker()
        tracker.update(fix(41.0, 29.0))
        tracker.update(fix(41.001, 29.0))

        tracker.reset()

        assert tracker.total_meters == 0.0
        assert tracker.last_position is None


class TestHaversineFormula:
    """Tests for haversine distance calculation."""

    def test_same_point_zero_distance(self):
        assert calculate_distance(41.0, 29.0, 41.0, 29.0) == 0.0

    def test_tokyo_regression(self):
        """Fixed numeric check for a short hop across central Tokyo."""
        d = haversine(35.6762, 139.6503, 35.6862, 139.6603)
        assert d == pytest.approx(1432.6, abs=5)

    def test_known_distance_istanbul_ankara(self):
        km = calculate_distance(41.0082, 28.9784, 39.9334, 32.8597) / 1000
        assert 340 < km < 360

    def test_equator_one_degree(self):
        """One degree longitude at equator is ~111km."""
        km = calculate_distance(0, 0, 0, 1) / 1000
        assert 110 < km < 112

    def test_symmetry(self):
        d1 = calculate_distance(41.0, 29.0, 42.0, 30.0)
        d2 = calculate_distance(42.0, 30.0, 41.0, 29.0)
        assert abs(d1 - d2) < 0.01


class TestDestinationPoint:
    """Tests for projecting a point along a bearing."""

    def test_projected_distance_matches(self):
        lat, lng = destination_point(35.6762, 139.6503, 45.0, 250.0)
        assert haversine(35.6762, 139.6503, lat, lng) == pytest.approx(250.0, abs=0.01)

    def test_due_north_keeps_longitude(self):
        lat, lng = destination_point(10.0, 20.0, 0.0, 1000.0)
        assert lat > 10.0
        assert lng == pytest.approx(20.0)

    def test_longitude_wraps(self):
        _, lng = destination_point(0.0, 179.9999, 90.0, 1000.0)
        assert -180 <= lng < 180
