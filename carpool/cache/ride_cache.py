"""
Cache-aside storage of ride records and search results in Valkey.

Only stored ride data is cached. Anything that depends on the current time
(``is_active``, ``can_be_booked``) is derived by the ride manager after the
read, so a cached entry never goes stale by the clock alone. Every seat or
status mutation invalidates the ride entry and bumps the search generation,
which orphans all cached search results at once.

A fill passes the generation it saw before reading the database; if an
invalidation bumped it meanwhile, the fresh entry is deleted again.

Cache failures are logged and reported as misses; they never fail the
caller.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from valkey.exceptions import ConnectionError, ResponseError, TimeoutError

from ..models.ride import RideModel
from .client import ValkeyClient
from .config import ValkeyConnectionError
from .utils import CacheKeyBuilder, CacheKeyPrefix, TTLPreset

logger = logging.getLogger(__name__)

CACHE_ERRORS = (ConnectionError, TimeoutError, ResponseError, ValkeyConnectionError)


class CachedRideModel(BaseModel):
    """Ride record plus the confirmed-seat view at caching time."""
    ride: RideModel
    booked_seats_view: int = 0


class RideCache:
    """
    Ride cache backed by a ValkeyClient.

    Args:
        valkey_client: Connected ValkeyClient
        ride_ttl: Seconds a cached ride stays valid
        search_ttl: Seconds a cached search result stays valid
    """

    def __init__(
        self,
        valkey_client: ValkeyClient,
        ride_ttl: int = TTLPreset.RIDE_SUMMARY.value,
        search_ttl: int = TTLPreset.SEARCH_RESULTS.value,
    ):
        self.valkey = valkey_client
        self.ride_ttl = ride_ttl
        self.search_ttl = search_ttl
        self.hits = 0
        self.misses = 0
        self.failures = 0

    @staticmethod
    def ride_key(ride_id: int) -> str:
        return CacheKeyBuilder.build_key(CacheKeyPrefix.RIDE_SUMMARY, ride_id)

    def get_ride(self, ride_id: int) -> Optional[CachedRideModel]:
        """Return the cached ride, or None on miss or cache failure."""
        try:
            raw = self.valkey.client.get(self.ride_key(ride_id))
        except CACHE_ERRORS as e:
            self._failed("get_ride", e)
            return None

        if raw is None:
            self.misses += 1
            return None

        self.hits += 1
        return CachedRideModel.model_validate_json(raw)

    def set_ride(self, ride: RideModel, booked_seats_view: int = 0, generation: Optional[int] = None) -> bool:
        """
        Cache a ride loaded from the database.

        ``generation`` is the value of ``current_generation()`` taken before
        the ride was read. If any invalidation happened since, the entry may
        hold a superseded row and is dropped again.

        Returns:
            True if the entry was stored and kept
        """
        key = self.ride_key(ride.ride_id)
        payload = CachedRideModel(ride=ride, booked_seats_view=booked_seats_view)
        try:
            self.valkey.client.set(key, payload.model_dump_json(), ex=self.ride_ttl)
            if generation is not None and self._generation() != generation:
                self.valkey.client.delete(key)
                logger.debug(f"Dropped cached ride {ride.ride_id} filled across an invalidation")
                return False
            return True
        except CACHE_ERRORS as e:
            self._failed("set_ride", e)
            return False

    def invalidate_ride(self, ride_id: int) -> bool:
        """
        Drop the cached ride and orphan every cached search result.

        Returns:
            True if the cache acknowledged the invalidation
        """
        try:
            # Bump before deleting; set_ride re-checks the generation after writing
            self.valkey.client.incr(CacheKeyPrefix.SEARCH_GENERATION.value)
            self.valkey.client.delete(self.ride_key(ride_id))
            logger.debug(f"Invalidated cached ride {ride_id}")
            return True
        except CACHE_ERRORS as e:
            self._failed("invalidate_ride", e)
            return False

    def invalidate_searches(self) -> bool:
        try:
            self.valkey.client.incr(CacheKeyPrefix.SEARCH_GENERATION.value)
            return True
        except CACHE_ERRORS as e:
            self._failed("invalidate_searches", e)
            return False

    def get_search(self, criteria: Dict[str, Any]) -> Optional[List[RideModel]]:
        """Return cached search results for ``criteria`` if any."""
        try:
            raw = self.valkey.client.get(self._search_key(criteria))
        except CACHE_ERRORS as e:
            self._failed("get_search", e)
            return None

        if raw is None:
            self.misses += 1
            return None

        self.hits += 1
        return [RideModel.model_validate(item) for item in json.loads(raw)]

    def set_search(self, criteria: Dict[str, Any], rides: List[RideModel]) -> bool:
        payload = json.dumps([ride.model_dump(mode="json") for ride in rides])
        try:
            self.valkey.client.set(self._search_key(criteria), payload, ex=self.search_ttl)
            return True
        except CACHE_ERRORS as e:
            self._failed("set_search", e)
            return False

    def get_stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "failures": self.failures,
            "hit_ratio": round(self.hits / total, 3) if total else 0.0,
            "healthy": self.valkey.health_check(),
            "connection": self.valkey.get_connection_info(),
        }

    def current_generation(self) -> Optional[int]:
        """Invalidation counter, or None when the cache is unreachable."""
        try:
            return self._generation()
        except CACHE_ERRORS as e:
            self._failed("current_generation", e)
            return None

    def _generation(self) -> int:
        return int(self.valkey.client.get(CacheKeyPrefix.SEARCH_GENERATION.value) or 0)

    def _search_key(self, criteria: Dict[str, Any]) -> str:
        return CacheKeyBuilder.build_hash_key(CacheKeyPrefix.RIDE_SEARCH, criteria, f"g{self._generation()}")

    def _failed(self, operation: str, error: Exception) -> None:
        self.failures += 1
        logger.warning(f"Ride cache {operation} failed, falling back to the database: {error}")
