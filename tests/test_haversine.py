"""Tests for the great-circle distance fallback."""

import math

import pytest

from produce_tracker.models.dto import Coordinates
from produce_tracker.services.location_resolver import CAPITAL_COORDINATES
from produce_tracker.utils.haversine import R, haversine, haversine_km

AMSTERDAM = Coordinates(lat=52.37, lng=4.90)


class TestHaversine:

    def test_same_point_is_zero(self):
        """Test that a point is zero kilometres from itself."""
        assert haversine(52.37, 4.90, 52.37, 4.90) == 0
        assert haversine_km(AMSTERDAM, AMSTERDAM) == 0

    def test_symmetric(self):
        """Test that the distance does not depend on direction."""
        madrid = CAPITAL_COORDINATES["spain"]
        assert haversine_km(AMSTERDAM, madrid) == haversine_km(madrid, AMSTERDAM)

    def test_amsterdam_to_madrid(self):
        """Test a known European distance within a few percent."""
        km = haversine_km(AMSTERDAM, CAPITAL_COORDINATES["spain"])
        assert 1400 <= km <= 1550

    def test_antipodes_do_not_raise(self):
        """Test that rounding near antipodal points stays in the asin domain."""
        assert haversine(0, 0, 0, 180) == pytest.approx(math.pi * R)

    def test_km_is_whole_number(self):
        """Test that the rounded variant returns an int."""
        km = haversine_km(AMSTERDAM, Coordinates(lat=48.8566, lng=2.3522))
        assert isinstance(km, int)
        assert km > 0
