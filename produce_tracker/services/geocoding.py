# produce_tracker/services/geocoding.py
# Geocoding / routing provider: Mapbox when a token is configured, Nominatim otherwise.
# Every failure surfaces as DistanceProviderError so callers can fall back locally.

import asyncio
import logging
import random
import re
from typing import Optional, Tuple
from urllib.parse import quote

import httpx

from produce_tracker.core.config import Settings
from produce_tracker.core.errors import DistanceProviderError
from produce_tracker.models.dto import Coordinates

logger = logging.getLogger(__name__)

MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"
MAPBOX_DIRECTIONS_URL = "https://api.mapbox.com/directions/v5/mapbox/driving/{coords}"

# "lat,lon" or "lat, lon"; comma decimals (European style) and loose spacing allowed
COORD_PATTERN = re.compile(r'^([-+]?\d{1,3}(?:[.,]\d+)?)[,;\s]+([-+]?\d{1,3}(?:[.,]\d+)?)$')


def parse_coordinates(text: str) -> Optional[Coordinates]:
    """
    Accepts a free-text coordinate pair such as "40.41, -3.70".
    Returns None when the text is not a coordinate literal or is out of range.
    """
    match = COORD_PATTERN.match((text or "").strip())
    if not match:
        return None
    try:
        val1 = float(match.group(1).replace(',', '.'))
        val2 = float(match.group(2).replace(',', '.'))
    except ValueError:
        return None

    # Default to lat, lon; a first value beyond 90 can only be a longitude
    if abs(val1) <= 90 and abs(val2) <= 180:
        lat, lon = val1, val2
    elif abs(val1) <= 180 and abs(val2) <= 90:
        lon, lat = val1, val2
    else:
        return None
    return Coordinates(lat=lat, lng=lon)


class GeocodingProvider:
    """
    HTTP client for place lookups and travel distances.

    - geocode(): Mapbox Geocoding (with retry on timeout) or Nominatim search.
    - reverse_geocode(): Nominatim reverse lookup for display names.
    - route_distance(): Mapbox Directions driving distance; needs a token.
    """

    def __init__(
        self,
        mapbox_token: Optional[str] = None,
        timeout: float = 8,
        max_retries: int = 2,
        initial_backoff: float = 1.0,
        nominatim_url: str = "https://nominatim.openstreetmap.org",
        user_agent: str = "SustainableProduceTracker",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.mapbox_token = mapbox_token
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.nominatim_url = nominatim_url.rstrip("/")
        self.headers = {
            "User-Agent": user_agent,
            "Accept-Language": "en",
            "Accept": "application/json",
        }
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeocodingProvider":
        return cls(
            mapbox_token=settings.MAPBOX_TOKEN,
            timeout=settings.MAPBOX_TIMEOUT,
            max_retries=settings.MAPBOX_MAX_RETRIES,
            initial_backoff=settings.MAPBOX_INITIAL_BACKOFF,
            nominatim_url=settings.NOMINATIM_URL,
            user_agent=settings.NOMINATIM_USER_AGENT,
        )

    @property
    def supports_routing(self) -> bool:
        return bool(self.mapbox_token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, headers=self.headers, transport=self._transport)

    async def _get_json(self, url: str, params: dict, label: str):
        """GET with exponential backoff on timeouts. Other failures are not retried."""
        backoff_time = self.initial_backoff
        for attempt in range(self.max_retries + 1):
            try:
                async with self._client() as client:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    return response.json()
            except httpx.TimeoutException:
                logger.warning(f"{label} attempt {attempt + 1} timed out.")
                if attempt < self.max_retries:
                    wait_time = max(0.0, backoff_time * (2 ** attempt) + random.uniform(-0.2, 0.2))
                    logger.info(f"Retrying in {wait_time:.2f}s...")
                    await asyncio.sleep(wait_time)
            except httpx.HTTPStatusError as e:
                logger.error(f"{label} returned status error: {e.response.status_code}")
                raise DistanceProviderError(f"{label} failed with HTTP {e.response.status_code}") from e
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"{label} request failed: {e}")
                raise DistanceProviderError(f"{label} request failed") from e
        raise DistanceProviderError(f"{label} timed out after {self.max_retries + 1} attempts")

    async def geocode(self, place: str) -> Coordinates:
        query = (place or "").strip()
        if not query:
            raise DistanceProviderError("Cannot geocode an empty place name")

        if self.mapbox_token:
            data = await self._get_json(
                MAPBOX_GEOCODE_URL.format(query=quote(query)),
                {"access_token": self.mapbox_token, "limit": 1},
                "Mapbox geocoding",
            )
            features = (data or {}).get("features") or []
            if not features:
                raise DistanceProviderError(f"No geocoding result for '{query}'")
            try:
                lon, lat = features[0]["center"]
                return Coordinates(lat=lat, lng=lon)
            except (KeyError, TypeError, ValueError) as e:
                raise DistanceProviderError(f"Malformed geocoding result for '{query}'") from e

        data = await self._get_json(
            f"{self.nominatim_url}/search",
            {"format": "jsonv2", "q": query, "limit": 1},
            "Nominatim search",
        )
        if not data:
            raise DistanceProviderError(f"No geocoding result for '{query}'")
        try:
            return Coordinates(lat=float(data[0]["lat"]), lng=float(data[0]["lon"]))
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise DistanceProviderError(f"Malformed geocoding result for '{query}'") from e

    async def reverse_geocode(self, coords: Coordinates) -> Tuple[Optional[str], Optional[str]]:
        """Returns (city, country) for display; either may be None."""
        data = await self._get_json(
            f"{self.nominatim_url}/reverse",
            {"format": "json", "lat": coords.lat, "lon": coords.lng, "zoom": 10},
            "Nominatim reverse",
        )
        if data is not None and not isinstance(data, dict):
            raise DistanceProviderError("Malformed reverse geocoding result")
        address = (data or {}).get("address") or {}
        city = address.get("city") or address.get("town") or address.get("village")
        return city, address.get("country")

    async def route_distance(self, origin: Coordinates, destination: Coordinates) -> float:
        """Driving distance in km. Sea crossings come back as NoRoute."""
        if not self.mapbox_token:
            raise DistanceProviderError("Routing provider is not configured")

        coords = f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}"
        data = await self._get_json(
            MAPBOX_DIRECTIONS_URL.format(coords=coords),
            {"access_token": self.mapbox_token, "overview": "false"},
            "Mapbox directions",
        )
        if not isinstance(data, dict):
            raise DistanceProviderError("Malformed directions result")
        routes = data.get("routes") or []
        if data.get("code") != "Ok" or not routes:
            raise DistanceProviderError(f"No route found ({data.get('code')})")
        try:
            return float(routes[0]["distance"]) / 1000.0
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise DistanceProviderError("Malformed directions result") from e
