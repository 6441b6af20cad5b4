# produce_tracker/services/seasonality.py
"""Is a produce in season for a month and hemisphere?

Static calendar first, then keyword patterns, then the classifier used as
a confidence-scored yes/no oracle. The oracle is best-effort; anything it
cannot answer confidently falls back to a default guess.
"""

from enum import Enum
from typing import FrozenSet, Optional

import structlog

from produce_tracker.core.errors import ClassifierError
from produce_tracker.services.classifier import ClassifierHandle

logger = structlog.get_logger(__name__)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

ALL_YEAR = frozenset(range(12))

# Northern-hemisphere (European) harvest months, 0 = January
SEASONAL_CALENDAR = {
    "apple": frozenset({0, 1, 2, 8, 9, 10, 11}),
    "avocado": ALL_YEAR,  # mostly imported
    "banana": ALL_YEAR,  # mostly imported
    "broccoli": frozenset({5, 6, 7, 8, 9, 10}),
    "carrot": frozenset({0, 5, 6, 7, 8, 9, 10, 11}),
    "strawberry": frozenset({4, 5, 6, 7}),
    "tomato": frozenset({5, 6, 7, 8, 9}),
    "potato": ALL_YEAR,
    "onion": frozenset({0, 1, 2, 3, 4, 9, 10, 11}),
    "pepper": frozenset({6, 7, 8, 9}),
    "cucumber": frozenset({4, 5, 6, 7, 8, 9}),
    "lettuce": frozenset({4, 5, 6, 7, 8, 9}),
    "spinach": frozenset({3, 4, 5, 8, 9, 10}),
    "orange": frozenset({0, 1, 2, 3, 11}),
    "pear": frozenset({0, 8, 9, 10, 11}),
    "grape": frozenset({8, 9, 10}),
    "kiwi": frozenset({0, 1, 2, 3, 4, 10, 11}),
    "mango": frozenset({3, 4, 5, 6, 7, 8}),  # mostly imported
    "pineapple": ALL_YEAR,  # mostly imported
    "blueberry": frozenset({5, 6, 7, 8}),
    "cauliflower": frozenset({0, 1, 2, 3, 9, 10, 11}),
    "leek": frozenset({0, 1, 2, 3, 9, 10, 11}),
    "cabbage": frozenset({0, 1, 2, 9, 10, 11}),
    "asparagus": frozenset({3, 4, 5}),
    "zucchini": frozenset({5, 6, 7, 8, 9}),
    "eggplant": frozenset({6, 7, 8, 9}),
    "raspberry": frozenset({5, 6, 7, 8}),
    "plum": frozenset({7, 8, 9}),
    "peach": frozenset({6, 7, 8}),
    "cherry": frozenset({5, 6}),
}

# Broad patterns for well-known items missing from the calendar (Northern months)
DEFAULT_PATTERNS = (
    (("berry", "melon", "summer"), frozenset({5, 6, 7, 8})),
    (("winter", "root"), frozenset({0, 1, 2, 10, 11})),
)

SOUTHERN_REGIONS = (
    "australia", "new zealand", "argentina", "chile",
    "south africa", "brazil", "peru", "uruguay",
)


class Hemisphere(str, Enum):
    NORTHERN = "Northern"
    SOUTHERN = "Southern"


def hemisphere_for(location: str) -> Hemisphere:
    name = (location or "").lower()
    if any(region in name for region in SOUTHERN_REGIONS):
        return Hemisphere.SOUTHERN
    return Hemisphere.NORTHERN


def month_name(month: int) -> str:
    return MONTH_NAMES[month % 12]


def _normalize(produce_name: str) -> str:
    return " ".join((produce_name or "").lower().split())


def calendar_months(produce_name: str) -> Optional[FrozenSet[int]]:
    """
    Exact key first, then the longest key contained in the name (the later
    one on a tie, so "cherry tomato" reads as a tomato). A fragment such as
    "blueb" only matches when a single key contains it.
    """
    name = _normalize(produce_name)
    if not name:
        return None
    if name in SEASONAL_CALENDAR:
        return SEASONAL_CALENDAR[name]

    contained = [key for key in SEASONAL_CALENDAR if key in name]
    if contained:
        best = max(contained, key=lambda key: (len(key), name.rfind(key)))
        return SEASONAL_CALENDAR[best]

    containing = [key for key in SEASONAL_CALENDAR if name in key]
    if len(name) >= 3 and len(containing) == 1:
        return SEASONAL_CALENDAR[containing[0]]
    return None


def calendar_in_season(produce_name: str, month: int) -> Optional[bool]:
    """Static-only answer; None when the calendar has no entry."""
    months = calendar_months(produce_name)
    if months is None:
        return None
    return month in months


def pattern_in_season(produce_name: str, month: int, hemisphere: Hemisphere) -> Optional[bool]:
    name = _normalize(produce_name)
    for keywords, months in DEFAULT_PATTERNS:
        if any(k in name for k in keywords):
            if hemisphere == Hemisphere.SOUTHERN:
                month = (month + 6) % 12
            return month in months
    return None


class SeasonalityOracle:
    def __init__(
        self,
        classifier: Optional[ClassifierHandle] = None,
        confidence_threshold: float = 0.7,
        default_guess: bool = True,
    ):
        self.classifier = classifier
        self.confidence_threshold = confidence_threshold
        self.default_guess = default_guess

    async def is_in_season(
        self,
        produce_name: str,
        month: int,
        hemisphere: Hemisphere = Hemisphere.NORTHERN,
        location: str = "your region",
    ) -> bool:
        if not 0 <= month <= 11:
            raise ValueError(f"month must be in 0..11, got {month}")

        answer = calendar_in_season(produce_name, month)
        if answer is not None:
            return answer

        answer = pattern_in_season(produce_name, month, hemisphere)
        if answer is not None:
            return answer

        return await self._ask_classifier(produce_name, month, location)

    async def _ask_classifier(self, produce_name: str, month: int, location: str) -> bool:
        if self.classifier is None:
            return self.default_guess

        prompt = f"{produce_name} is in season in {location} during {month_name(month)}"
        try:
            verdict = await self.classifier.infer(prompt)
        except ClassifierError as e:
            logger.warning("seasonality_classifier_unavailable", produce=produce_name, error=str(e))
            return self.default_guess

        if verdict.score > self.confidence_threshold:
            return verdict.label == "POSITIVE"
        logger.info("seasonality_low_confidence", produce=produce_name, label=verdict.label, score=verdict.score)
        return self.default_guess
