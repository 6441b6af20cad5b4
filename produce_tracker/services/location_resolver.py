# produce_tracker/services/location_resolver.py
# Turns browser coordinates, typed city/country text or a source-location string into Coordinates.

import asyncio
from typing import Dict, Optional, Protocol, Union

import structlog

from produce_tracker.core.errors import (
    DistanceProviderError,
    GeolocationDenied,
    GeolocationTimeout,
    GeolocationUnavailable,
    LocationUnavailable,
)
from produce_tracker.models.dto import Coordinates, UserLocation
from produce_tracker.services.geocode_cache import GeocodeCache
from produce_tracker.services.geocoding import GeocodingProvider, parse_coordinates

logger = structlog.get_logger(__name__)

# Country -> capital city coordinates, checked before any provider call
CAPITAL_COORDINATES: Dict[str, Coordinates] = {
    "spain": Coordinates(lat=40.4168, lng=-3.7038),  # Madrid
    "france": Coordinates(lat=48.8566, lng=2.3522),  # Paris
    "italy": Coordinates(lat=41.9028, lng=12.4964),  # Rome
    "germany": Coordinates(lat=52.5200, lng=13.4050),  # Berlin
    "united kingdom": Coordinates(lat=51.5074, lng=-0.1278),  # London
    "netherlands": Coordinates(lat=52.3676, lng=4.9041),  # Amsterdam
    "belgium": Coordinates(lat=50.8503, lng=4.3517),  # Brussels
    "portugal": Coordinates(lat=38.7223, lng=-9.1393),  # Lisbon
    "greece": Coordinates(lat=37.9838, lng=23.7275),  # Athens
    "sweden": Coordinates(lat=59.3293, lng=18.0686),  # Stockholm
    "norway": Coordinates(lat=59.9139, lng=10.7522),  # Oslo
    "denmark": Coordinates(lat=55.6761, lng=12.5683),  # Copenhagen
    "finland": Coordinates(lat=60.1699, lng=24.9384),  # Helsinki
    "poland": Coordinates(lat=52.2297, lng=21.0122),  # Warsaw
    "austria": Coordinates(lat=48.2082, lng=16.3738),  # Vienna
    "switzerland": Coordinates(lat=46.9480, lng=7.4474),  # Bern
    "ireland": Coordinates(lat=53.3498, lng=-6.2603),  # Dublin
    "mexico": Coordinates(lat=19.4326, lng=-99.1332),  # Mexico City
    "usa": Coordinates(lat=38.9072, lng=-77.0369),  # Washington DC
    "canada": Coordinates(lat=45.4215, lng=-75.6972),  # Ottawa
    "brazil": Coordinates(lat=-15.7801, lng=-47.9292),  # Brasilia
    "argentina": Coordinates(lat=-34.6037, lng=-58.3816),  # Buenos Aires
    "chile": Coordinates(lat=-33.4489, lng=-70.6693),  # Santiago
    "morocco": Coordinates(lat=34.0209, lng=-6.8416),  # Rabat
    "south africa": Coordinates(lat=-25.7461, lng=28.1881),  # Pretoria
    "egypt": Coordinates(lat=30.0444, lng=31.2357),  # Cairo
    "china": Coordinates(lat=39.9042, lng=116.4074),  # Beijing
    "japan": Coordinates(lat=35.6762, lng=139.6503),  # Tokyo
    "india": Coordinates(lat=28.6139, lng=77.2090),  # New Delhi
    "australia": Coordinates(lat=-35.2809, lng=149.1300),  # Canberra
    "new zealand": Coordinates(lat=-41.2865, lng=174.7762),  # Wellington
}

# Reverse containment ("spa" in "spain") only for queries at least this long
MIN_REVERSE_MATCH = 3


class PositionSource(Protocol):
    """Single-shot browser geolocation request."""
    async def get_current_position(self) -> Coordinates: ...


async def request_position(source: PositionSource, timeout: float = 10.0) -> Coordinates:
    """
    Awaits one position from ``source`` and maps every failure onto a typed
    LocationUnavailable subclass. Never lets a raw exception escape.
    """
    try:
        return await asyncio.wait_for(source.get_current_position(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise GeolocationTimeout("Location request timed out. Please enter your location manually.") from e
    except LocationUnavailable:
        raise
    except PermissionError as e:
        raise GeolocationDenied("Location permission was denied. Please enter your location manually.") from e
    except Exception as e:
        raise GeolocationUnavailable("Your location is unavailable. Please enter your location manually.") from e


def lookup_cached(place: str) -> Optional[Coordinates]:
    """Case-insensitive containment match against the capital cache."""
    normalized = " ".join((place or "").lower().split())
    if not normalized:
        return None
    for country, coords in CAPITAL_COORDINATES.items():
        if country in normalized:
            return coords
        if len(normalized) >= MIN_REVERSE_MATCH and normalized in country:
            return coords
    return None


class LocationResolver:
    def __init__(
        self,
        geocoder: Optional[GeocodingProvider] = None,
        cache: Optional[GeocodeCache] = None,
        geolocation_timeout: float = 10.0,
    ):
        self.geocoder = geocoder
        self.cache = cache
        self.geolocation_timeout = geolocation_timeout

    async def resolve(self, location: Union[UserLocation, str]) -> Coordinates:
        """
        Coordinates for a UserLocation or a free-text place.

        Raises:
            LocationUnavailable: nothing usable was given or nothing matched.
        """
        if isinstance(location, UserLocation):
            if location.has_coordinates:
                return Coordinates(lat=location.latitude, lng=location.longitude)
            if not location.has_text:
                raise LocationUnavailable()
            return await self.resolve_text(location.text())
        return await self.resolve_text(location)

    async def resolve_text(self, place: str) -> Coordinates:
        query = (place or "").strip()
        if not query:
            raise LocationUnavailable()

        literal = parse_coordinates(query)
        if literal is not None:
            return literal

        cached = lookup_cached(query)
        if cached is not None:
            return cached

        if self.cache is not None:
            hit = await self.cache.get(query)
            if hit is not None:
                return hit

        if self.geocoder is None:
            logger.warning("location_unresolved", place=query, reason="no_geocoder")
            raise LocationUnavailable(f"Could not find a location for '{query}'.")

        try:
            coords = await self.geocoder.geocode(query)
        except DistanceProviderError as e:
            logger.warning("location_unresolved", place=query, reason=str(e))
            raise LocationUnavailable(f"Could not find a location for '{query}'.") from e

        if self.cache is not None:
            await self.cache.set(query, coords)
        return coords

    async def resolve_user(
        self,
        location: UserLocation,
        position_source: Optional[PositionSource] = None,
    ) -> Coordinates:
        """
        Browser coordinates win; then a live position request; then typed text.
        A denied or timed-out position request only matters when no text was entered.
        """
        if location.has_coordinates:
            return Coordinates(lat=location.latitude, lng=location.longitude)

        geolocation_error: Optional[LocationUnavailable] = None
        if position_source is not None:
            try:
                return await request_position(position_source, self.geolocation_timeout)
            except LocationUnavailable as e:
                logger.info("geolocation_failed", reason=e.reason)
                geolocation_error = e

        if location.has_text:
            return await self.resolve_text(location.text())

        if geolocation_error is not None:
            raise geolocation_error
        raise LocationUnavailable()

    async def describe(self, location: UserLocation) -> str:
        """Display string for the consumer's location."""
        name = location.display_name()
        if name:
            return name
        if location.has_coordinates and self.geocoder is not None:
            try:
                city, country = await self.geocoder.reverse_geocode(
                    Coordinates(lat=location.latitude, lng=location.longitude)
                )
            except DistanceProviderError as e:
                logger.info("reverse_geocode_failed", error=str(e))
            else:
                parts = [p for p in (city, country) if p]
                if parts:
                    return ", ".join(parts)
        return "your location"
