"""Tests for the transport and production CO2 estimate."""

import pytest

from produce_tracker.services.emission_model import (
    EmissionModel,
    TransportMode,
    production_emissions,
    transport_mode,
)


@pytest.fixture
def model():
    return EmissionModel()


class TestTransportMode:

    def test_long_haul_perishables_fly(self):
        assert transport_mode(9200, "avocado") == TransportMode.AIR_FREIGHT
        assert transport_mode(6000, "Strawberry") == TransportMode.AIR_FREIGHT

    def test_long_haul_other_produce_ships(self):
        assert transport_mode(6000, "apple") == TransportMode.SEA_FREIGHT

    def test_road_tiers(self):
        assert transport_mode(5000, "apple") == TransportMode.ROAD_LONG
        assert transport_mode(1001, "apple") == TransportMode.ROAD_LONG
        assert transport_mode(1000, "apple") == TransportMode.ROAD_SHORT
        assert transport_mode(0, "apple") == TransportMode.ROAD_SHORT

    def test_factor(self):
        assert TransportMode.AIR_FREIGHT.factor == 0.00025
        assert TransportMode.SEA_FREIGHT.factor == 0.00003


class TestProductionEmissions:

    def test_refrigerated_produce(self):
        assert production_emissions("avocado") == 0.2
        assert production_emissions("Green Asparagus") == 0.2

    def test_default_produce(self):
        assert production_emissions("carrot") == 0.1


class TestEmissionModel:

    def test_air_freighted_avocado(self, model):
        """Test 9200 km of air freight plus refrigerated production."""
        assert model.estimate(9200, "avocado") == 2.5

    def test_short_road_trip(self, model):
        assert model.estimate(500, "apple") == 0.15

    def test_rounded_to_two_decimals(self, model):
        """Test 1234 km * 0.00015 + 0.1 = 0.2851 is reported as 0.29."""
        assert model.estimate(1234, "pear") == 0.29

    def test_deterministic(self, model):
        assert model.estimate(4321, "tomato") == model.estimate(4321, "tomato")

    def test_negative_distance_treated_as_zero(self, model):
        assert model.estimate(-50, "carrot") == 0.1

    def test_never_negative(self, model):
        for distance in (0, 10, 999, 1001, 5001, 20000):
            assert model.estimate(distance, "mango") >= 0
