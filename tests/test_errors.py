"""
Tests for the error taxonomy and its result codes.
"""

import pytest

from carpool.errors import (
    BookingNotCancellable,
    BookingNotFound,
    BookingTransitionError,
    CarpoolError,
    ContentionError,
    InsufficientSeats,
    InvalidInputError,
    InvalidSearch,
    InvalidSeatCount,
    NoVehicleRegistered,
    NotCancellable,
    NotEditable,
    NotFoundError,
    NotStartable,
    RideAlreadyDeparted,
    RideNotBookable,
    RideNotFound,
    SelfBookingForbidden,
    StateError,
)


class TestResultCodes:
    """Every error maps to the status code the HTTP layer answers with."""

    @pytest.mark.parametrize("error_class, status_code", [
        (RideNotFound, 404),
        (BookingNotFound, 404),
        (InsufficientSeats, 409),
        (SelfBookingForbidden, 400),
        (RideAlreadyDeparted, 400),
        (RideNotBookable, 400),
        (NotStartable, 400),
        (NotCancellable, 400),
        (BookingNotCancellable, 400),
        (NoVehicleRegistered, 400),
        (InvalidSeatCount, 400),
        (InvalidSearch, 400),
        (BookingTransitionError, 400),
        (NotEditable, 403),
    ])
    def test_status_codes(self, error_class, status_code):
        assert error_class.status_code == status_code
        assert issubclass(error_class, CarpoolError)

    @pytest.mark.parametrize("error_class, family", [
        (InvalidSeatCount, InvalidInputError),
        (InvalidSearch, InvalidInputError),
        (SelfBookingForbidden, StateError),
        (NotEditable, StateError),
        (InsufficientSeats, ContentionError),
        (RideNotFound, NotFoundError),
    ])
    def test_families(self, error_class, family):
        assert issubclass(error_class, family)

    def test_codes_are_unique(self):
        leaves = [
            RideNotFound, BookingNotFound, InsufficientSeats, SelfBookingForbidden, RideAlreadyDeparted,
            RideNotBookable, NotStartable, NotCancellable, BookingNotCancellable, NoVehicleRegistered,
            InvalidSeatCount, InvalidSearch, BookingTransitionError, NotEditable,
        ]
        assert len({cls.code for cls in leaves}) == len(leaves)


class TestErrorPayload:
    def test_default_message_and_details(self):
        error = InsufficientSeats(ride_id=7, requested=2, available=1)

        assert str(error) == InsufficientSeats.default_message
        assert error.to_dict() == {
            "error": "insufficient_seats",
            "message": InsufficientSeats.default_message,
            "status_code": 409,
            "details": {"ride_id": 7, "requested": 2, "available": 1},
        }

    def test_custom_message(self):
        error = NotCancellable("Ride 3 is completed", ride_id=3)
        assert error.message == "Ride 3 is completed"
        assert error.details == {"ride_id": 3}
