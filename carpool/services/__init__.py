"""
Carpool core services: seat inventory, ride and booking lifecycles.
"""

from .seat_inventory import SeatInventoryGuard, validate_seat_count
from .ride_manager import RideLifecycleManager
from .booking_manager import BookingLifecycleManager
from .booking_simulator import BookingScenario, BookingSimulator
from .registry import CarpoolServices, build_cache, build_services

__all__ = [
    "SeatInventoryGuard",
    "validate_seat_count",
    "RideLifecycleManager",
    "BookingLifecycleManager",
    "BookingScenario",
    "BookingSimulator",
    "CarpoolServices",
    "build_cache",
    "build_services",
]
