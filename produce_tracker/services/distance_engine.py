# produce_tracker/services/distance_engine.py
# Travel distance between a source location and the consumer, in whole kilometres.

from typing import Optional, Union

import structlog

from produce_tracker.core.errors import DistanceProviderError, LocationUnavailable
from produce_tracker.models.dto import Coordinates
from produce_tracker.services.geocoding import GeocodingProvider
from produce_tracker.services.location_resolver import LocationResolver
from produce_tracker.utils.haversine import haversine_km

logger = structlog.get_logger(__name__)

DEFAULT_DISTANCE_KM = 5000


class DistanceEngine:
    """
    Prefers a routing provider's travel distance and falls back to the
    haversine great-circle distance, which cannot fail. When the origin
    cannot be resolved at all, a fixed default distance is used.
    """

    def __init__(
        self,
        resolver: LocationResolver,
        router: Optional[GeocodingProvider] = None,
        default_distance_km: int = DEFAULT_DISTANCE_KM,
    ):
        self.resolver = resolver
        self.router = router
        self.default_distance_km = default_distance_km
        self.used_fallback = False

    def fallback_distance(self, reason: str) -> int:
        self.used_fallback = True
        logger.warning("distance_fallback", distance_km=self.default_distance_km, reason=reason)
        return self.default_distance_km

    async def distance(self, origin: Union[str, Coordinates], destination: Coordinates) -> int:
        if isinstance(origin, Coordinates):
            origin_coords = origin
        else:
            try:
                origin_coords = await self.resolver.resolve_text(origin)
            except LocationUnavailable:
                return self.fallback_distance(f"unresolved origin '{origin}'")

        if self.router is not None and self.router.supports_routing:
            try:
                km = await self.router.route_distance(origin_coords, destination)
                return max(0, round(km))
            except DistanceProviderError as e:
                logger.info("route_distance_unavailable", error=str(e))

        return haversine_km(origin_coords, destination)
