"""Tests for the seasonality oracle.

Static calendar and keyword patterns answer first; the classifier is only
consulted for produce neither of them knows.
"""

import asyncio

import pytest

from produce_tracker.core.errors import InferenceError
from produce_tracker.services.seasonality import (
    ALL_YEAR,
    SEASONAL_CALENDAR,
    Hemisphere,
    SeasonalityOracle,
    calendar_in_season,
    calendar_months,
    hemisphere_for,
    month_name,
    pattern_in_season,
)
from tests.fakes import FakeClassifier

JULY = 6
JANUARY = 0


def in_season(oracle, produce, month, hemisphere=Hemisphere.NORTHERN, location="Oslo"):
    return asyncio.run(oracle.is_in_season(produce, month, hemisphere, location))


class TestStaticCalendar:

    def test_tomato_in_july(self):
        """Test that tomatoes are in season in July from the calendar alone."""
        assert in_season(SeasonalityOracle(), "tomato", JULY) is True

    def test_tomato_not_in_january(self):
        assert in_season(SeasonalityOracle(), "tomato", JANUARY) is False

    def test_partial_name_matches(self):
        """Test that a longer produce name still finds its calendar entry."""
        assert calendar_in_season("cherry tomatoes", JULY) is True
        assert calendar_in_season("Strawberry", 4) is True

    def test_pineapple_is_not_an_apple(self):
        assert calendar_months("pineapple") == ALL_YEAR
        assert calendar_in_season("pineapple", JULY) is True
        assert in_season(SeasonalityOracle(), "pineapple", JULY) is True
        assert calendar_in_season("apple", JULY) is False

    def test_longest_key_wins(self):
        assert calendar_months("wild blueberry") == SEASONAL_CALENDAR["blueberry"]
        assert calendar_months("cherry tomato") == SEASONAL_CALENDAR["tomato"]

    def test_ambiguous_fragment_has_no_entry(self):
        assert calendar_months("app") is None
        assert calendar_months("aspara") == SEASONAL_CALENDAR["asparagus"]

    def test_unknown_produce_has_no_entry(self):
        assert calendar_in_season("durian", JULY) is None

    def test_calendar_wins_over_classifier(self):
        classifier = FakeClassifier(default=("NEGATIVE", 0.99))
        assert in_season(SeasonalityOracle(classifier), "tomato", JULY) is True
        assert classifier.prompts == []


class TestPatterns:

    def test_berry_pattern_northern(self):
        assert pattern_in_season("gooseberry", JULY, Hemisphere.NORTHERN) is True
        assert pattern_in_season("gooseberry", JANUARY, Hemisphere.NORTHERN) is False

    def test_southern_hemisphere_shifts_six_months(self):
        assert pattern_in_season("gooseberry", JANUARY, Hemisphere.SOUTHERN) is True
        assert pattern_in_season("gooseberry", JULY, Hemisphere.SOUTHERN) is False

    def test_winter_pattern(self):
        assert pattern_in_season("winter squash", 11, Hemisphere.NORTHERN) is True

    def test_no_pattern(self):
        assert pattern_in_season("durian", JULY, Hemisphere.NORTHERN) is None


class TestClassifierFallback:

    def test_confident_positive(self):
        classifier = FakeClassifier(default=("POSITIVE", 0.95))
        assert in_season(SeasonalityOracle(classifier), "durian", 3) is True
        assert classifier.prompts == ["durian is in season in Oslo during April"]

    def test_confident_negative(self):
        classifier = FakeClassifier(default=("NEGATIVE", 0.9))
        assert in_season(SeasonalityOracle(classifier), "durian", 3) is False

    def test_low_confidence_uses_default_guess(self):
        classifier = FakeClassifier(default=("NEGATIVE", 0.6))
        assert in_season(SeasonalityOracle(classifier), "durian", 3) is True

    def test_threshold_is_exclusive(self):
        classifier = FakeClassifier(default=("NEGATIVE", 0.7))
        assert in_season(SeasonalityOracle(classifier, confidence_threshold=0.7), "durian", 3) is True

    def test_unavailable_model_uses_default_guess(self):
        classifier = FakeClassifier(unavailable=True)
        assert in_season(SeasonalityOracle(classifier), "durian", 3) is True

    def test_inference_error_uses_default_guess(self):
        classifier = FakeClassifier(rules=[("durian", InferenceError("boom"))])
        assert in_season(SeasonalityOracle(classifier, default_guess=False), "durian", 3) is False

    def test_no_classifier(self):
        assert in_season(SeasonalityOracle(None), "durian", 3) is True


class TestHelpers:

    def test_month_out_of_range(self):
        with pytest.raises(ValueError):
            in_season(SeasonalityOracle(), "tomato", 12)

    def test_hemisphere_for(self):
        assert hemisphere_for("Sydney, Australia") == Hemisphere.SOUTHERN
        assert hemisphere_for("Amsterdam, Netherlands") == Hemisphere.NORTHERN
        assert hemisphere_for("") == Hemisphere.NORTHERN

    def test_month_name(self):
        assert month_name(0) == "January"
        assert month_name(11) == "December"
