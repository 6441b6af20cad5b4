# produce_tracker/services/alternative_ranker.py
"""Multi-objective ranking of lower-impact substitutes.

Each candidate is scored on nutritional similarity to the query produce
(cosine similarity of normalized nutrient vectors), on how likely it can be
grown near the consumer (classifier oracle), and on its estimated
emissions. The weighted score picks the shortlist; the shortlist is shown
ordered by how much travel it saves.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import structlog

from produce_tracker.core.errors import InferenceError, ModelUnavailable
from produce_tracker.models.dto import AlternativeOption
from produce_tracker.services import nutrition
from produce_tracker.services.classifier import ClassifierHandle
from produce_tracker.services.emission_model import EmissionModel
from produce_tracker.services.seasonality import calendar_in_season, month_name

logger = structlog.get_logger(__name__)

SIMILARITY_WEIGHT = 0.7
LOCALITY_WEIGHT = 0.2
ENVIRONMENT_WEIGHT = 0.1

# Share of the original journey a perfectly local candidate avoids
LOCALITY_DISTANCE_CUT = 0.8
NEUTRAL_LOCALITY = 0.5
LOCAL_THRESHOLD = 0.5
SIMILAR_THRESHOLD = 0.9

# Backfill journeys in km
LOCAL_FARM_KM = 200
COMMUNITY_GARDEN_KM = 5
FALLBACK_LABEL = "Local seasonal produce"


@dataclass
class ScoredCandidate:
    name: str
    similarity: float
    locality: float
    estimated_distance: float
    co2_impact: float
    distance_reduction: int
    environmental: float
    score: float
    benefits: List[str]


def distance_reduction(travel_distance: float, estimated_distance: float) -> int:
    if travel_distance <= 0:
        return 0
    pct = round((travel_distance - estimated_distance) / travel_distance * 100)
    return max(0, min(100, pct))


def environmental_score(co2_impact: float, travel_distance: float) -> float:
    if travel_distance <= 0:
        return 0.0
    return max(0.0, min(1.0, 1 - co2_impact / (travel_distance * 0.001)))


def split_for_display(options: Sequence[AlternativeOption]) -> Tuple[List[AlternativeOption], List[AlternativeOption]]:
    """First half (rounded up) is shown as seasonal, the remainder as local."""
    half = math.ceil(len(options) / 2)
    return list(options[:half]), list(options[half:])


class AlternativeRanker:
    def __init__(
        self,
        classifier: Optional[ClassifierHandle],
        emission_model: Optional[EmissionModel] = None,
        max_alternatives: int = 6,
        min_alternatives: int = 2,
        min_distance_reduction: int = 30,
        max_candidates: int = 12,
    ):
        self.classifier = classifier
        self.emission_model = emission_model or EmissionModel()
        self.max_alternatives = max_alternatives
        self.min_alternatives = min_alternatives
        self.min_distance_reduction = min_distance_reduction
        self.max_candidates = max_candidates

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def candidate_pool(self, produce_name: str) -> List[str]:
        groups = nutrition.find_food_groups(produce_name)
        if groups:
            members = [item for g in groups for item in nutrition.FOOD_GROUPS[g]]
        else:
            members = list(nutrition.GENERIC_CANDIDATES)

        pool: List[str] = []
        for item in members:
            if nutrition.same_produce(item, produce_name):
                continue
            if any(nutrition.same_produce(item, seen) for seen in pool):
                continue
            pool.append(item)
            if len(pool) >= self.max_candidates:
                break
        return pool

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    async def rank(
        self,
        produce_name: str,
        co2_impact: float,
        travel_distance: float,
        source_location: str,
        user_location: str,
        month: Optional[int] = None,
    ) -> List[AlternativeOption]:
        """Up to ``max_alternatives`` options sorted by distance reduction, best first."""
        if self.classifier is None:
            return [self.fallback_alternative(produce_name, travel_distance, user_location)]
        try:
            await self.classifier.ensure_loaded()
            scored = [
                await self._score(candidate, produce_name, co2_impact, travel_distance, user_location, month)
                for candidate in self.candidate_pool(produce_name)
            ]
        except ModelUnavailable as e:
            logger.warning("ranker_classifier_unavailable", produce=produce_name, error=str(e))
            return [self.fallback_alternative(produce_name, travel_distance, user_location)]

        kept = [c for c in scored if c.distance_reduction >= self.min_distance_reduction]
        rejected = len(scored) - len(kept)
        if rejected:
            logger.info("ranker_rejected_candidates", produce=produce_name, rejected=rejected)

        shortlist = sorted(kept, key=lambda c: c.score, reverse=True)[: self.max_alternatives]
        ranked = [(self._to_option(c, produce_name), c.similarity) for c in shortlist]

        if len(ranked) < self.min_alternatives:
            for extra, similarity in self.backfill(produce_name, travel_distance, user_location):
                if len(ranked) >= self.min_alternatives:
                    break
                if not any(nutrition.same_produce(extra.name, o.name) for o, _ in ranked):
                    ranked.append((extra, similarity))

        # Ties on distance reduction go to the nutritionally closer option
        ranked.sort(key=lambda pair: (pair[0].distance_reduction, pair[1]), reverse=True)
        return [option for option, _ in ranked][: self.max_alternatives]

    async def _score(
        self,
        candidate: str,
        produce_name: str,
        co2_impact: float,
        travel_distance: float,
        user_location: str,
        month: Optional[int],
    ) -> ScoredCandidate:
        features = nutrition.nutrition_features(candidate)
        target = nutrition.nutrition_features(produce_name)
        similarity = features.cosine_similarity(target)
        shared_vitamins = features.shared_vitamins(target)
        locality = await self._locality(candidate, user_location)

        estimated = travel_distance * (1 - locality * LOCALITY_DISTANCE_CUT)
        candidate_co2 = self.emission_model.estimate(estimated, candidate)
        reduction = distance_reduction(travel_distance, estimated)
        environmental = environmental_score(candidate_co2, travel_distance)
        score = SIMILARITY_WEIGHT * similarity + LOCALITY_WEIGHT * locality + ENVIRONMENT_WEIGHT * environmental

        benefits: List[str] = []
        if reduction > 0:
            benefits.append(f"Reduces transport emissions by {reduction}%")
        if locality >= LOCAL_THRESHOLD:
            benefits.append(f"Can be grown locally in {user_location}")
        if similarity >= SIMILAR_THRESHOLD:
            benefits.append(f"Similar nutritional profile to {produce_name}")
        if shared_vitamins:
            label = "vitamin" if len(shared_vitamins) == 1 else "vitamins"
            benefits.append(f"Shares {label} {', '.join(shared_vitamins)} with {produce_name}")
        if candidate_co2 < co2_impact:
            benefits.append(f"Cuts the estimated footprint from {co2_impact:.2f} to {candidate_co2:.2f} kg CO2/kg")
        if month is not None and calendar_in_season(candidate, month):
            benefits.append(f"In season during {month_name(month)}")
        if not benefits:
            benefits.append(f"A lower-impact option than imported {produce_name}")

        return ScoredCandidate(
            name=candidate,
            similarity=similarity,
            locality=locality,
            estimated_distance=estimated,
            co2_impact=candidate_co2,
            distance_reduction=reduction,
            environmental=environmental,
            score=score,
            benefits=benefits,
        )

    async def _locality(self, candidate: str, user_location: str) -> float:
        try:
            verdict = await self.classifier.infer(f"{candidate} is grown locally in {user_location}")
        except InferenceError as e:
            logger.info("locality_inference_failed", candidate=candidate, error=str(e))
            return NEUTRAL_LOCALITY
        return verdict.positive_likelihood

    @staticmethod
    def _to_option(c: ScoredCandidate, produce_name: str) -> AlternativeOption:
        return AlternativeOption(
            name=c.name.title(),
            co2_impact=c.co2_impact,
            distance_reduction=c.distance_reduction,
            benefits=c.benefits,
            nutritional_similarity=f"{round(c.similarity * 100)}% nutritional match with {produce_name}",
        )

    # ------------------------------------------------------------------
    # Fallbacks
    # ------------------------------------------------------------------

    def _synthetic(self, name: str, distance_km: float, travel_distance: float, benefits: List[str]) -> AlternativeOption:
        reduction = distance_reduction(travel_distance, min(distance_km, travel_distance))
        if reduction > 0:
            benefits = [f"Reduces transport emissions by {reduction}%"] + benefits
        return AlternativeOption(
            name=name,
            co2_impact=self.emission_model.estimate(min(distance_km, travel_distance), name),
            distance_reduction=reduction,
            benefits=benefits,
        )

    def fallback_alternative(self, produce_name: str, travel_distance: float, user_location: str) -> AlternativeOption:
        """Deterministic single suggestion used when scoring is impossible."""
        return self._synthetic(
            FALLBACK_LABEL,
            LOCAL_FARM_KM,
            travel_distance,
            [
                f"Grown within or near {user_location}",
                f"Adjusted to the current season instead of imported {produce_name}",
            ],
        )

    def backfill(
        self, produce_name: str, travel_distance: float, user_location: str
    ) -> List[Tuple[AlternativeOption, float]]:
        """Synthetic entries paired with their nutritional similarity to the query."""
        return [
            (self._synthetic(
                f"Locally grown {produce_name}",
                LOCAL_FARM_KM,
                travel_distance,
                [
                    "Same nutritional profile as the imported version",
                    "Harvested at peak ripeness for flavor and nutrition",
                ],
            ), 1.0),
            (self._synthetic(
                "Community garden produce",
                COMMUNITY_GARDEN_KM,
                travel_distance,
                ["Almost zero food miles", "Complete transparency in growing methods"],
            ), 0.0),
            (self.fallback_alternative(produce_name, travel_distance, user_location), 0.0),
        ]
