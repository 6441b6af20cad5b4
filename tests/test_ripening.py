"""Tests for the post-harvest ripening classifier."""

import asyncio

import pytest

from produce_tracker.core.errors import InferenceError
from produce_tracker.services.ripening import (
    ETHYLENE_TREATMENT,
    GREEN_HARVEST,
    RIPENING_TABLE,
    RipeningClassifier,
    distance_adjusted,
)
from tests.fakes import FakeClassifier

ARTIFICIAL = "ripened artificially"
NATURAL = "ripens naturally"


def classify(ripening, produce, source, distance_km=0.0, destination=None):
    return asyncio.run(ripening.classify(produce, source, distance_km, destination))


class TestKnownProduce:

    def test_country_specific_entry(self):
        """Test that a known produce/country pair returns its own description."""
        result = classify(RipeningClassifier(), "Banana", "Ecuador")
        assert result == RIPENING_TABLE["banana"]["ecuador"]

    def test_unknown_country_uses_produce_default(self):
        result = classify(RipeningClassifier(), "banana", "Iceland")
        assert result == RIPENING_TABLE["banana"]["default"]

    def test_ethylene_group(self):
        assert classify(RipeningClassifier(), "papaya", "Brazil") == ETHYLENE_TREATMENT

    def test_green_harvest_group(self):
        assert classify(RipeningClassifier(), "eggplant", "Turkey") == GREEN_HARVEST

    def test_table_skips_classifier(self):
        classifier = FakeClassifier()
        classify(RipeningClassifier(classifier), "kiwi", "New Zealand")
        assert classifier.prompts == []


class TestInference:

    def test_no_classifier_means_unknown(self):
        assert classify(RipeningClassifier(None), "durian", "Thailand") is None

    def test_artificial_wins_on_long_haul(self):
        classifier = FakeClassifier(rules=[(ARTIFICIAL, ("POSITIVE", 0.8)), (NATURAL, ("POSITIVE", 0.6))])
        result = classify(RipeningClassifier(classifier), "durian", "Thailand", 9000, "Berlin")
        assert result == "Likely uses post-harvest ripening techniques when imported from Thailand to Berlin."
        assert len(classifier.prompts) == 2

    def test_natural_wins(self):
        classifier = FakeClassifier(rules=[(ARTIFICIAL, ("NEGATIVE", 0.9)), (NATURAL, ("POSITIVE", 0.9))])
        assert classify(RipeningClassifier(classifier), "durian", "Thailand") is None

    def test_tie_is_natural(self):
        classifier = FakeClassifier(default=("POSITIVE", 0.7))
        assert classify(RipeningClassifier(classifier), "durian", "Thailand", 0) is None

    def test_classifier_failure_means_unknown(self):
        classifier = FakeClassifier(rules=[(ARTIFICIAL, InferenceError("boom"))])
        assert classify(RipeningClassifier(classifier), "durian", "Thailand") is None

    def test_generated_description(self):
        """Test that chat markers are stripped from generated text."""
        classifier = FakeClassifier(
            rules=[(NATURAL, ("NEGATIVE", 0.9))],
            generated="<|im_start|>assistant\nShipped unripe and ripened with ethylene.<|im_end|>",
        )
        result = classify(RipeningClassifier(classifier, use_generation=True), "durian", "Thailand")
        assert result == "Shipped unripe and ripened with ethylene."
        assert "durian" in classifier.generation_prompts[0]

    def test_empty_generation_falls_back_to_template(self):
        classifier = FakeClassifier(rules=[(NATURAL, ("NEGATIVE", 0.9))], generated="")
        result = classify(RipeningClassifier(classifier, use_generation=True), "durian", "Thailand")
        assert result == "Likely uses post-harvest ripening techniques when imported from Thailand."


class TestDistanceAdjustment:

    def test_no_distance(self):
        assert distance_adjusted(0.6, 0) == pytest.approx(0.6)

    def test_capped_at_long_haul(self):
        assert distance_adjusted(0.6, 10000) == pytest.approx(0.9)
        assert distance_adjusted(0.6, 5000) == pytest.approx(0.9)

    def test_partial(self):
        assert distance_adjusted(0.5, 2500) == pytest.approx(0.625)
