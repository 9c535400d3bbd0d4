"""
Data access objects for the carpool records.

Each DAO wraps a single SQLAlchemy session; the caller owns the transaction.
"""

from .ride_dao import RideDAO
from .booking_dao import BookingDAO
from .vehicle_dao import VehicleDAO

__all__ = [
    "RideDAO",
    "BookingDAO",
    "VehicleDAO",
]
