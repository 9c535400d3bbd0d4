"""
Booking lifecycle management.

A booking is ``pending`` until confirmed, then ``confirmed`` until the ride
is done (``completed``) or someone backs out (``cancelled``). Seats are taken
off the ride counter exactly when a booking becomes confirmed, inside the
same transaction as the status change, so the counter and the bookings
commit or roll back together.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..daos.booking_dao import BookingDAO
from ..daos.ride_dao import RideDAO
from ..database.config import DatabaseConfig
from ..errors import (
    BookingNotCancellable,
    BookingNotFound,
    BookingTransitionError,
    InvalidInputError,
    RideAlreadyDeparted,
    RideNotBookable,
    RideNotFound,
    SelfBookingForbidden,
)
from ..models.booking import BookingModel, BookingResultModel
from ..models.enums import BOOKABLE_RIDE_STATUSES, CANCELLABLE_BOOKING_STATUSES, BookingStatus, RideStatus
from ..utils.config import CarpoolConfig
from .seat_inventory import SeatInventoryGuard, validate_seat_count

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500


class BookingLifecycleManager:
    """
    Books seats for passengers and moves bookings through their states.

    Args:
        db_config: Database configuration owning the session factory
        guard: Seat inventory guard; built on db_config if omitted
        config: Carpool settings (restock policy)
        cache: Optional RideCache invalidated after seat changes
        clock: Source of the current time
    """

    def __init__(
        self,
        db_config: DatabaseConfig,
        guard: Optional[SeatInventoryGuard] = None,
        config: Optional[CarpoolConfig] = None,
        cache=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_config = db_config
        self.config = config or CarpoolConfig()
        self.cache = cache
        self.clock = clock
        self.guard = guard or SeatInventoryGuard(db_config, cache=cache, clock=clock)

    @property
    def restock_on_cancel(self) -> bool:
        return self.config.booking_restock_on_cancel

    def book(
        self,
        passenger_id: int,
        ride_id: int,
        seat_count: int = 1,
        message: Optional[str] = None,
        auto_confirm: bool = True,
    ) -> BookingResultModel:
        """
        Book seats on a ride for a passenger.

        With ``auto_confirm`` (the default) the seats are reserved and the
        booking is stored as confirmed in one transaction. Without it the
        booking is stored as pending and holds no seats until ``confirm``.

        Args:
            passenger_id: Booking passenger
            ride_id: Ride to book
            seat_count: Seats requested, 1 to 8
            message: Optional note to the driver
            auto_confirm: Reserve seats immediately

        Returns:
            BookingResultModel with the booking and the seats left on the ride

        Raises:
            InvalidSeatCount: seat_count outside 1-8
            InvalidInputError: message too long
            RideNotFound: No such ride
            SelfBookingForbidden: Passenger is the ride's driver
            RideNotBookable: Ride is not active
            RideAlreadyDeparted: Departure is not in the future
            InsufficientSeats: Not enough seats left
        """
        validate_seat_count(seat_count)
        if message is not None and len(message) > MAX_MESSAGE_LENGTH:
            raise InvalidInputError(f"Message is limited to {MAX_MESSAGE_LENGTH} characters")

        now = self.clock()
        remaining: Optional[int] = None

        with self.db_config.get_session_context() as session:
            ride = RideDAO(session).get(ride_id)
            if ride is None:
                raise RideNotFound(ride_id=ride_id)

            if ride.driver_id == passenger_id:
                raise SelfBookingForbidden(ride_id=ride_id, passenger_id=passenger_id)

            if ride.status not in BOOKABLE_RIDE_STATUSES:
                raise RideNotBookable(f"Ride {ride_id} is {ride.status}", ride_id=ride_id, status=ride.status)

            if ride.departure_at <= now:
                raise RideAlreadyDeparted(ride_id=ride_id)

            unit_price = ride.price

            if auto_confirm:
                remaining = self.guard.reserve_seats(ride_id, seat_count, session=session, bookable_at=now)
                status = BookingStatus.CONFIRMED.value
            else:
                status = BookingStatus.PENDING.value

            booking = BookingDAO(session).create(
                passenger_id=passenger_id,
                ride_id=ride_id,
                seat_count=seat_count,
                status=status,
                message=message,
                total_price=unit_price * seat_count,
                created_at=now,
                updated_at=now,
            )
            result = BookingResultModel(booking=BookingModel.model_validate(booking), remaining_seats=remaining)

        logger.info(
            f"Passenger {passenger_id} booked {seat_count} seat(s) on ride {ride_id} "
            f"(booking {result.booking.booking_id}, {status})"
        )
        if auto_confirm:
            self._invalidate(ride_id)
        return result

    def confirm(self, booking_id: int) -> BookingResultModel:
        """
        Confirm a pending booking and reserve its seats.

        Raises:
            BookingNotFound: No such booking
            BookingTransitionError: Booking is not pending
            RideNotBookable: Ride is no longer active
            RideAlreadyDeparted: Departure is not in the future
            InsufficientSeats: Not enough seats left
        """
        now = self.clock()

        with self.db_config.get_session_context() as session:
            bookings = BookingDAO(session)
            booking = self._load(bookings, booking_id)

            if booking.status != BookingStatus.PENDING.value:
                raise BookingTransitionError(
                    f"Only pending bookings can be confirmed, booking {booking_id} is {booking.status}",
                    booking_id=booking_id,
                )

            ride = RideDAO(session).get(booking.ride_id)
            if ride.status not in BOOKABLE_RIDE_STATUSES:
                raise RideNotBookable(f"Ride {ride.ride_id} is {ride.status}", ride_id=ride.ride_id)
            if ride.departure_at <= now:
                raise RideAlreadyDeparted(ride_id=ride.ride_id)

            ride_id = booking.ride_id
            if bookings.update_status(booking_id, BookingStatus.CONFIRMED.value, [BookingStatus.PENDING.value], now) == 0:
                raise BookingTransitionError(f"Booking {booking_id} changed status concurrently", booking_id=booking_id)

            remaining = self.guard.reserve_seats(ride_id, booking.seat_count, session=session, bookable_at=now)
            result = BookingResultModel(
                booking=BookingModel.model_validate(bookings.get(booking_id)), remaining_seats=remaining
            )

        logger.info(f"Booking {booking_id} confirmed, {remaining} seat(s) left on ride {ride_id}")
        self._invalidate(ride_id)
        return result

    def cancel(self, booking_id: int) -> BookingModel:
        """
        Cancel a pending or confirmed booking before the ride departs.

        Seats of a confirmed booking go back to the ride only when the
        restock-on-cancel policy is enabled.

        Raises:
            BookingNotFound: No such booking
            BookingNotCancellable: Wrong status or the ride has departed
        """
        now = self.clock()
        restocked = False

        with self.db_config.get_session_context() as session:
            bookings = BookingDAO(session)
            booking = self._load(bookings, booking_id)
            previous_status = booking.status

            if previous_status not in CANCELLABLE_BOOKING_STATUSES:
                raise BookingNotCancellable(
                    f"Booking {booking_id} is {previous_status}", booking_id=booking_id, status=previous_status
                )

            ride = RideDAO(session).get(booking.ride_id)
            if ride.departure_at <= now:
                raise BookingNotCancellable(
                    f"Ride {ride.ride_id} has already departed", booking_id=booking_id
                )

            ride_id, seat_count = booking.ride_id, booking.seat_count
            if bookings.update_status(booking_id, BookingStatus.CANCELLED.value, [previous_status], now) == 0:
                raise BookingNotCancellable(f"Booking {booking_id} changed status concurrently", booking_id=booking_id)

            if self.restock_on_cancel and previous_status == BookingStatus.CONFIRMED.value:
                self.guard.release_seats(ride_id, seat_count, session=session)
                restocked = True

            result = BookingModel.model_validate(bookings.get(booking_id))

        logger.info(
            f"Booking {booking_id} cancelled (was {previous_status}"
            f"{', seats restocked' if restocked else ''})"
        )
        if restocked:
            self._invalidate(ride_id)
        return result

    def complete(self, booking_id: int) -> BookingModel:
        """
        Mark a confirmed booking completed once its ride is completed.

        Raises:
            BookingNotFound: No such booking
            BookingTransitionError: Booking not confirmed or ride not completed
        """
        now = self.clock()

        with self.db_config.get_session_context() as session:
            bookings = BookingDAO(session)
            booking = self._load(bookings, booking_id)

            if booking.status != BookingStatus.CONFIRMED.value:
                raise BookingTransitionError(
                    f"Only confirmed bookings can be completed, booking {booking_id} is {booking.status}",
                    booking_id=booking_id,
                )

            ride = RideDAO(session).get(booking.ride_id)
            if ride.status != RideStatus.COMPLETED.value:
                raise BookingTransitionError(
                    f"Ride {ride.ride_id} is {ride.status}, not completed", booking_id=booking_id
                )

            if bookings.update_status(booking_id, BookingStatus.COMPLETED.value, [BookingStatus.CONFIRMED.value], now) == 0:
                raise BookingTransitionError(f"Booking {booking_id} changed status concurrently", booking_id=booking_id)

            result = BookingModel.model_validate(bookings.get(booking_id))

        logger.info(f"Booking {booking_id} completed")
        return result

    def get(self, booking_id: int) -> BookingModel:
        with self.db_config.get_session_context() as session:
            return BookingModel.model_validate(self._load(BookingDAO(session), booking_id))

    def list_for_passenger(self, passenger_id: int) -> List[BookingModel]:
        with self.db_config.get_session_context() as session:
            return [BookingModel.model_validate(b) for b in BookingDAO(session).find_by_passenger(passenger_id)]

    def list_for_driver(self, driver_id: int) -> List[BookingModel]:
        """Bookings on every ride the driver offers."""
        with self.db_config.get_session_context() as session:
            return [BookingModel.model_validate(b) for b in BookingDAO(session).find_by_driver(driver_id)]

    def list_pending(self) -> List[BookingModel]:
        with self.db_config.get_session_context() as session:
            return [BookingModel.model_validate(b) for b in BookingDAO(session).find_pending()]

    @staticmethod
    def _load(bookings: BookingDAO, booking_id: int):
        booking = bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id=booking_id)
        return booking

    def _invalidate(self, ride_id: int) -> None:
        if self.cache is not None:
            self.cache.invalidate_ride(ride_id)
