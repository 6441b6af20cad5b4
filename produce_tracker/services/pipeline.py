# produce_tracker/services/pipeline.py
"""Orchestrates one sustainability analysis.

Idle -> Resolving -> Calculating -> Analyzing -> Ranking -> Done | Failed

Stages run in order because each one needs the previous result; only the
season and ripening checks are independent and run together. Location and
distance problems are absorbed with documented fallbacks; a missing
credential or an unexpected stage error ends the run in Failed.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

import structlog

from produce_tracker.core.config import Settings
from produce_tracker.core.errors import ConfigurationError, LocationUnavailable, PipelineFailure
from produce_tracker.models.dto import Coordinates, PipelineState, ProduceInfo, ProduceQuery
from produce_tracker.services.alternative_ranker import AlternativeRanker, split_for_display
from produce_tracker.services.classifier import ClassifierHandle
from produce_tracker.services.distance_engine import DistanceEngine
from produce_tracker.services.emission_model import EmissionModel
from produce_tracker.services.geocode_cache import GeocodeCache
from produce_tracker.services.geocoding import GeocodingProvider
from produce_tracker.services.location_resolver import LocationResolver, PositionSource
from produce_tracker.services.ripening import RipeningClassifier
from produce_tracker.services.seasonality import SeasonalityOracle, hemisphere_for

logger = structlog.get_logger(__name__)

CLASSIFIER_WARNING = "The AI classifier is unavailable; season, ripening and alternatives use built-in heuristics."
DISTANCE_WARNING = "Travel distance could not be calculated precisely; a default estimate was used."


@dataclass
class AnalysisOutcome:
    info: ProduceInfo
    warnings: List[str] = field(default_factory=list)


class SustainabilityPipeline:
    def __init__(
        self,
        resolver: LocationResolver,
        distance_engine: DistanceEngine,
        emission_model: EmissionModel,
        seasonality: SeasonalityOracle,
        ripening: RipeningClassifier,
        ranker: AlternativeRanker,
        classifier: Optional[ClassifierHandle] = None,
        today: Callable[[], date] = date.today,
    ):
        self.resolver = resolver
        self.distance_engine = distance_engine
        self.emission_model = emission_model
        self.seasonality = seasonality
        self.ripening = ripening
        self.ranker = ranker
        self.classifier = classifier
        self.today = today
        self.state = PipelineState.IDLE

    @classmethod
    def build(
        cls,
        settings: Settings,
        classifier: ClassifierHandle,
        geocoder: Optional[GeocodingProvider] = None,
        cache: Optional[GeocodeCache] = None,
        today: Callable[[], date] = date.today,
    ) -> "SustainabilityPipeline":
        resolver = LocationResolver(geocoder, cache, geolocation_timeout=settings.GEOLOCATION_TIMEOUT)
        emission_model = EmissionModel()
        return cls(
            resolver=resolver,
            distance_engine=DistanceEngine(resolver, geocoder, default_distance_km=settings.DEFAULT_DISTANCE_KM),
            emission_model=emission_model,
            seasonality=SeasonalityOracle(classifier, confidence_threshold=settings.CLASSIFIER_CONFIDENCE_THRESHOLD),
            ripening=RipeningClassifier(classifier, use_generation=settings.ENABLE_GENERATIVE_RIPENING),
            ranker=AlternativeRanker(
                classifier,
                emission_model,
                max_alternatives=settings.MAX_ALTERNATIVES,
                min_alternatives=settings.MIN_ALTERNATIVES,
                min_distance_reduction=settings.MIN_DISTANCE_REDUCTION,
                max_candidates=settings.MAX_CANDIDATES,
            ),
            classifier=classifier,
            today=today,
        )

    def _enter(self, state: PipelineState) -> None:
        self.state = state
        logger.debug("pipeline_state", state=state.value)

    async def run(self, query: ProduceQuery, position_source: Optional[PositionSource] = None) -> AnalysisOutcome:
        log = logger.bind(produce=query.produce_name, source=query.source_location)
        try:
            if self.classifier is not None:
                self.classifier.require_credentials()
            outcome = await self._run_stages(query, position_source)
        except (LocationUnavailable, ConfigurationError) as e:
            self._enter(PipelineState.FAILED)
            log.warning("pipeline_failed", error_type=type(e).__name__, error=str(e))
            raise
        except Exception as e:
            self._enter(PipelineState.FAILED)
            log.exception("pipeline_failed", error_type=type(e).__name__)
            raise PipelineFailure("Failed to analyze produce sustainability.", query=query) from e

        self._enter(PipelineState.DONE)
        log.info(
            "pipeline_done",
            travel_distance=outcome.info.travel_distance,
            co2_impact=outcome.info.co2_impact,
            alternatives=len(outcome.info.seasonal_alternatives) + len(outcome.info.local_alternatives),
        )
        return outcome

    async def _run_stages(self, query: ProduceQuery, position_source: Optional[PositionSource]) -> AnalysisOutcome:
        warnings: List[str] = []
        user = query.user_location

        self._enter(PipelineState.RESOLVING)
        destination: Optional[Coordinates] = None
        try:
            destination = await self.resolver.resolve_user(user, position_source)
        except LocationUnavailable:
            # Typed text that cannot be geocoded still lets the analysis run on the default distance
            if not user.has_text:
                raise
            logger.warning("user_location_unresolved", location=user.text())
        user_display = await self.resolver.describe(user)

        self._enter(PipelineState.CALCULATING)
        if destination is None:
            travel_distance = self.distance_engine.fallback_distance("unresolved user location")
        else:
            travel_distance = await self.distance_engine.distance(query.source_location, destination)
        if self.distance_engine.used_fallback:
            warnings.append(DISTANCE_WARNING)

        self._enter(PipelineState.ANALYZING)
        co2_impact = self.emission_model.estimate(travel_distance, query.produce_name)
        month = self.today().month - 1
        hemisphere = hemisphere_for(user_display)
        in_season, ripening_method = await asyncio.gather(
            self.seasonality.is_in_season(query.produce_name, month, hemisphere, user_display),
            self.ripening.classify(query.produce_name, query.source_location, travel_distance, user_display),
        )

        self._enter(PipelineState.RANKING)
        alternatives = await self.ranker.rank(
            query.produce_name,
            co2_impact,
            travel_distance,
            query.source_location,
            user_display,
            month=month,
        )
        seasonal, local = split_for_display(alternatives)

        if self.classifier is not None and self.classifier.is_unavailable:
            warnings.append(CLASSIFIER_WARNING)

        info = ProduceInfo(
            name=query.produce_name,
            source=query.source_location,
            co2_impact=co2_impact,
            travel_distance=travel_distance,
            ripening_method=ripening_method,
            in_season=in_season,
            seasonal_alternatives=seasonal,
            local_alternatives=local,
            user_location=user_display,
        )
        return AnalysisOutcome(info=info, warnings=warnings)


class StaleResult(Exception):
    """A newer submission or a reset superseded this run."""


class AnalysisSession:
    """
    Per-user holder of the latest query and result.

    Every submission gets a generation number; a run that completes after a
    newer submission (or a reset) is discarded instead of overwriting the
    newer state.
    """

    def __init__(self, pipeline_factory: Callable[[], SustainabilityPipeline]):
        self.pipeline_factory = pipeline_factory
        self.generation = 0
        self.state = PipelineState.IDLE
        self.last_query: Optional[ProduceQuery] = None
        self.outcome: Optional[AnalysisOutcome] = None

    async def submit(self, query: ProduceQuery, position_source: Optional[PositionSource] = None) -> AnalysisOutcome:
        self.generation += 1
        token = self.generation
        self.last_query = query
        self.outcome = None
        self.state = PipelineState.RESOLVING

        pipeline = self.pipeline_factory()
        try:
            outcome = await pipeline.run(query, position_source)
        except Exception:
            if token == self.generation:
                self.state = PipelineState.FAILED
            raise

        if token != self.generation:
            logger.info("stale_result_discarded", generation=token, current=self.generation)
            raise StaleResult(f"Analysis {token} was superseded by {self.generation}")

        self.outcome = outcome
        self.state = PipelineState.DONE
        return outcome

    async def retry(self, position_source: Optional[PositionSource] = None) -> AnalysisOutcome:
        if self.last_query is None:
            raise LookupError("No previous query to retry")
        return await self.submit(self.last_query, position_source)

    def reset(self) -> None:
        self.generation += 1
        self.outcome = None
        self.state = PipelineState.IDLE
