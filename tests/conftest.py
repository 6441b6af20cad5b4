"""Fixtures shared across the test suite."""

from datetime import date

import pytest

from produce_tracker.core.config import Settings
from produce_tracker.models.dto import Coordinates, ProduceQuery, UserLocation
from tests.fakes import AMSTERDAM, FakeClassifier, FakeGeocoder


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, HUGGING_FACE_TOKEN="hf_test_token", ENV="test")


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def geocoder():
    return FakeGeocoder(
        places={"Berlin": Coordinates(lat=52.52, lng=13.405)},
        reverse=("Amsterdam", "Netherlands"),
    )


@pytest.fixture
def july():
    return lambda: date(2024, 7, 15)


@pytest.fixture
def avocado_query():
    return ProduceQuery(
        produce_name="avocado",
        source_location="Spain",
        user_location=UserLocation(latitude=AMSTERDAM.lat, longitude=AMSTERDAM.lng),
    )
