# produce_tracker/services/geocode_cache.py
"""Caches for geocoded place names so repeated queries skip the provider.

The Redis variant is a thin async wrapper around redis.asyncio that fails
open: connection or parse errors are logged and treated as cache misses.
"""
import json
import time
from typing import Dict, Optional, Protocol, Tuple

import structlog
from redis.asyncio import Redis

from produce_tracker.core.config import Settings
from produce_tracker.models.dto import Coordinates

logger = structlog.get_logger(__name__)


def cache_key(place: str) -> str:
    return "geocode:" + " ".join(place.lower().split())


class GeocodeCache(Protocol):
    async def get(self, place: str) -> Optional[Coordinates]: ...
    async def set(self, place: str, coords: Coordinates) -> None: ...


class InMemoryGeocodeCache:
    """Per-process TTL cache."""

    def __init__(self, ttl_seconds: int = 3600):
        self.ttl = ttl_seconds
        self._store: Dict[str, Tuple[float, Coordinates]] = {}

    async def get(self, place: str) -> Optional[Coordinates]:
        key = cache_key(place)
        entry = self._store.get(key)
        if not entry:
            return None
        expires, coords = entry
        if expires < time.time():
            self._store.pop(key, None)
            return None
        return coords

    async def set(self, place: str, coords: Coordinates) -> None:
        self._store[cache_key(place)] = (time.time() + self.ttl, coords)


class RedisGeocodeCache:
    def __init__(self, url: Optional[str] = None, ttl_seconds: int = 3600, redis_client: Optional[Redis] = None):
        if redis_client is None:
            if not url:
                raise ValueError("REDIS_URL is not set in the environment")
            redis_client = Redis.from_url(url)
        self._redis = redis_client
        self.ttl = ttl_seconds

    async def get(self, place: str) -> Optional[Coordinates]:
        key = cache_key(place)
        try:
            raw = await self._redis.get(key)
        except Exception as e:
            logger.error("geocode_cache_get_error", error=str(e), key=key)
            return None
        if raw is None:
            return None
        try:
            return Coordinates.model_validate(json.loads(raw))
        except ValueError:
            logger.error("geocode_cache_parse_error", key=key, raw_value=str(raw))
            return None

    async def set(self, place: str, coords: Coordinates) -> None:
        key = cache_key(place)
        try:
            await self._redis.setex(key, self.ttl, coords.model_dump_json())
        except Exception as e:
            logger.error("geocode_cache_set_error", error=str(e), key=key)

    async def close(self) -> None:
        await self._redis.aclose()


def build_geocode_cache(settings: Settings) -> GeocodeCache:
    if settings.ENABLE_REDIS and settings.REDIS_URL:
        logger.info("geocode_cache_backend", backend="redis")
        return RedisGeocodeCache(settings.REDIS_URL, ttl_seconds=settings.GEOCODE_CACHE_TTL)
    logger.info("geocode_cache_backend", backend="memory")
    return InMemoryGeocodeCache(ttl_seconds=settings.GEOCODE_CACHE_TTL)
