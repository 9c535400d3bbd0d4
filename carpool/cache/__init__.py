"""
Valkey-backed cache-aside layer for ride lookups.
"""

from .config import ValkeyConfig, ValkeyConnectionError, ValkeyConfigurationError
from .client import ValkeyClient
from .utils import CacheKeyBuilder, CacheKeyPrefix, TTLPreset
from .ride_cache import RideCache, CachedRideModel

__all__ = [
    "ValkeyConfig",
    "ValkeyConnectionError",
    "ValkeyConfigurationError",
    "ValkeyClient",
    "CacheKeyBuilder",
    "CacheKeyPrefix",
    "TTLPreset",
    "RideCache",
    "CachedRideModel",
]
