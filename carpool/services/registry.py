"""
Wiring of the carpool services from configuration.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..cache.client import ValkeyClient
from ..cache.config import ValkeyConfig, ValkeyConnectionError
from ..cache.ride_cache import RideCache
from ..database.config import DatabaseConfig
from ..utils.config import CarpoolConfig, get_config
from .booking_manager import BookingLifecycleManager
from .booking_simulator import BookingSimulator
from .ride_manager import RideLifecycleManager
from .seat_inventory import SeatInventoryGuard

logger = logging.getLogger(__name__)


@dataclass
class CarpoolServices:
    """Process-wide service handles sharing one engine and one cache."""
    config: CarpoolConfig
    db_config: DatabaseConfig
    cache: Optional[RideCache]
    guard: SeatInventoryGuard
    rides: RideLifecycleManager
    bookings: BookingLifecycleManager
    simulator: BookingSimulator

    def close(self) -> None:
        if self.cache is not None:
            self.cache.valkey.disconnect()
        self.db_config.close()


def build_cache(config: CarpoolConfig) -> Optional[RideCache]:
    """
    Connect the ride cache if enabled.

    An unreachable Valkey server disables the cache instead of failing
    startup.
    """
    if not config.cache_enabled:
        return None

    client = ValkeyClient(ValkeyConfig.from_carpool_config(config))
    try:
        client.connect()
    except ValkeyConnectionError as e:
        logger.warning(f"Ride cache disabled: {e}")
        return None

    return RideCache(client, ride_ttl=config.ride_cache_ttl)


def build_services(
    config: Optional[CarpoolConfig] = None,
    db_config: Optional[DatabaseConfig] = None,
    cache: Optional[RideCache] = None,
    clock: Callable[[], datetime] = datetime.now,
    create_tables: bool = True,
) -> CarpoolServices:
    """
    Build the services for one process.

    Args:
        config: Settings, loaded from the environment if omitted
        db_config: Database to use instead of config.database_url
        cache: Ride cache to use instead of connecting per config
        clock: Source of the current time for every service
        create_tables: Create missing tables on startup
    """
    config = config or get_config()
    db_config = db_config or DatabaseConfig(config.database_url, echo=config.carpool_debug)
    db_config.initialize()
    if create_tables:
        db_config.create_tables()

    if cache is None:
        cache = build_cache(config)

    guard = SeatInventoryGuard(db_config, cache=cache, clock=clock)
    rides = RideLifecycleManager(db_config, config=config, cache=cache, clock=clock)
    bookings = BookingLifecycleManager(db_config, guard=guard, config=config, cache=cache, clock=clock)

    return CarpoolServices(
        config=config,
        db_config=db_config,
        cache=cache,
        guard=guard,
        rides=rides,
        bookings=bookings,
        simulator=BookingSimulator(bookings),
    )
