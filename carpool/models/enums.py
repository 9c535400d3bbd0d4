"""
Enums for the carpool core.

Statuses are stored as their string values in the database.
"""

from enum import Enum


class RideStatus(str, Enum):
    """Ride lifecycle: ACTIVE is initial, COMPLETED and CANCELLED are terminal."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PLANNED = "planned"        # Legacy alias of ACTIVE found in older rows; never written


class BookingStatus(str, Enum):
    """Booking lifecycle: PENDING is initial."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class VehicleEnergy(str, Enum):
    """Vehicle energy type."""
    ELECTRIC = "electric"
    HYBRID = "hybrid"
    THERMAL = "thermal"


# Ride statuses a passenger may book against
BOOKABLE_RIDE_STATUSES = frozenset({RideStatus.ACTIVE.value, RideStatus.PLANNED.value})

# Booking statuses that can still be cancelled
CANCELLABLE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value})
