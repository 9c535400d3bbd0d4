"""
Cache key naming and TTL presets for the ride cache.
"""

import hashlib
import json
from enum import Enum
from typing import Any, Dict, Union


class CacheKeyPrefix(str, Enum):
    """Cache key prefixes used by the carpool core."""

    RIDE_SUMMARY = "carpool:ride"
    RIDE_SEARCH = "carpool:search"
    SEARCH_GENERATION = "carpool:search:generation"


class TTLPreset(int, Enum):
    """TTL presets in seconds."""

    RIDE_SUMMARY = 300
    SEARCH_RESULTS = 60


class CacheKeyBuilder:
    """Builds ``prefix:part:part:key=value`` cache keys."""

    @staticmethod
    def build_key(prefix: Union[CacheKeyPrefix, str], *parts: Any, **params: Any) -> str:
        """
        Build a cache key with prefix, parts, and parameters.

        Example:
            build_key(CacheKeyPrefix.RIDE_SUMMARY, 42)
            # Returns: "carpool:ride:42"
        """
        prefix_str = prefix.value if isinstance(prefix, CacheKeyPrefix) else str(prefix)
        key_parts = [prefix_str]

        for part in parts:
            if part is not None:
                key_parts.append(str(part))

        for key, value in sorted(params.items()):
            if value is not None:
                key_parts.append(f"{key}={value}")

        return ":".join(key_parts)

    @staticmethod
    def build_hash_key(prefix: Union[CacheKeyPrefix, str], data: Dict[str, Any], *parts: Any) -> str:
        """
        Build a key ending in a short hash of ``data``.

        Example:
            build_hash_key(CacheKeyPrefix.RIDE_SEARCH, {"origin": "paris"}, 3)
            # Returns: "carpool:search:3:hash:1f2e3d4c5b6a"
        """
        data_str = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
        data_hash = hashlib.md5(data_str.encode()).hexdigest()[:12]
        return CacheKeyBuilder.build_key(prefix, *parts, "hash", data_hash)
