"""
Error taxonomy for the carpool core.

Every error carries an HTTP-style ``status_code`` and a stable ``code`` so the
outer layer can map it to a response without inspecting messages:

- InvalidInputError: rejected before the store is touched
- StateError: rejected after a read, before any mutation
- ContentionError: a conditional update matched no row (zero effect)
- NotFoundError: the referenced ride or booking does not exist
"""

from typing import Any, Dict, Optional


class CarpoolError(Exception):
    """Base class for all carpool core errors."""

    status_code: int = 500
    code: str = "carpool_error"
    default_message: str = "Carpool operation failed"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a response-friendly dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class InvalidInputError(CarpoolError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid input"


class StateError(CarpoolError):
    status_code = 400
    code = "invalid_state"
    default_message = "Operation not allowed in the current state"


class ContentionError(CarpoolError):
    status_code = 409
    code = "conflict"
    default_message = "Concurrent update conflict"


class NotFoundError(CarpoolError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


# Validation


class InvalidSeatCount(InvalidInputError):
    code = "invalid_seat_count"
    default_message = "Seat count must be between 1 and 8"


class InvalidSearch(InvalidInputError):
    code = "invalid_search"
    default_message = "Invalid search parameters"


# Lookups


class RideNotFound(NotFoundError):
    code = "ride_not_found"
    default_message = "Ride not found"


class BookingNotFound(NotFoundError):
    code = "booking_not_found"
    default_message = "Booking not found"


# Seat inventory


class InsufficientSeats(ContentionError):
    code = "insufficient_seats"
    default_message = "Not enough seats left on this ride"


class SeatRestockOverflow(StateError):
    code = "seat_restock_overflow"
    default_message = "Releasing these seats would exceed the ride capacity"


# Ride lifecycle


class NoVehicleRegistered(StateError):
    code = "no_vehicle_registered"
    default_message = "A vehicle must be registered before publishing a ride"


class NotStartable(StateError):
    code = "ride_not_startable"
    default_message = "Ride can only be started from 30 minutes before to 2 hours after departure"


class NotCancellable(StateError):
    code = "ride_not_cancellable"
    default_message = "Ride cannot be cancelled"


class NotEditable(StateError):
    status_code = 403
    code = "ride_not_editable"
    default_message = "Ride can no longer be modified"


# Booking lifecycle


class SelfBookingForbidden(StateError):
    code = "self_booking_forbidden"
    default_message = "Drivers cannot book their own ride"


class RideNotBookable(StateError):
    code = "ride_not_bookable"
    default_message = "Ride is not open for booking"


class RideAlreadyDeparted(StateError):
    code = "ride_already_departed"
    default_message = "Ride has already departed"


class BookingNotCancellable(StateError):
    code = "booking_not_cancellable"
    default_message = "Booking cannot be cancelled"


class BookingTransitionError(StateError):
    code = "booking_transition_invalid"
    default_message = "Booking status transition not allowed"


__all__ = [
    "CarpoolError",
    "InvalidInputError",
    "StateError",
    "ContentionError",
    "NotFoundError",
    "InvalidSeatCount",
    "InvalidSearch",
    "RideNotFound",
    "BookingNotFound",
    "InsufficientSeats",
    "SeatRestockOverflow",
    "NoVehicleRegistered",
    "NotStartable",
    "NotCancellable",
    "NotEditable",
    "SelfBookingForbidden",
    "RideNotBookable",
    "RideAlreadyDeparted",
    "BookingNotCancellable",
    "BookingTransitionError",
]
