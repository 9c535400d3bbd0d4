"""
Seat inventory guard for rides.

The guard is the only component allowed to change a ride's
``available_seats`` counter. Each change is a single conditional UPDATE:

    UPDATE ride SET available_seats = available_seats - :n
    WHERE ride_id = :id AND available_seats >= :n

The database applies it atomically and serializes concurrent writers on the
ride row, so no application lock is taken and no read-then-write happens in
Python. Concurrent bookings of different rides never contend with each other.
Bookings also pass their booking time, which adds the ride status and
departure to the same WHERE clause so a ride closed by a concurrent request
cannot lose seats.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..daos.booking_dao import BookingDAO
from ..daos.ride_dao import RideDAO
from ..database.config import DatabaseConfig
from ..errors import (
    InsufficientSeats,
    InvalidSeatCount,
    RideAlreadyDeparted,
    RideNotBookable,
    RideNotFound,
    SeatRestockOverflow,
)
from ..models.enums import BOOKABLE_RIDE_STATUSES, BookingStatus
from ..models.ride import SeatReconciliationModel

logger = logging.getLogger(__name__)

MIN_SEATS_PER_BOOKING = 1
MAX_SEATS_PER_BOOKING = 8

# Bookings whose seats are taken off the counter
SEAT_HOLDING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


def validate_seat_count(seat_count) -> int:
    """
    Check a requested seat count before any store access.

    Raises:
        InvalidSeatCount: If seat_count is not an integer between 1 and 8
    """
    if isinstance(seat_count, bool) or not isinstance(seat_count, int):
        raise InvalidSeatCount(f"Seat count must be an integer, got {seat_count!r}", seat_count=seat_count)
    if not MIN_SEATS_PER_BOOKING <= seat_count <= MAX_SEATS_PER_BOOKING:
        raise InvalidSeatCount(seat_count=seat_count)
    return seat_count


class SeatInventoryGuard:
    """
    Atomic seat counter operations on rides.

    Features:
    - Conditional decrement that can never oversell a ride
    - Optional conditional increment for restock on cancellation
    - Read-only reconciliation of the counter against booked seats

    Every operation accepts an optional caller-owned session. With one, the
    update joins the caller's transaction and the caller invalidates any
    cache after committing. Without one, the guard commits its own short
    transaction and invalidates the ride cache itself.
    """

    def __init__(
        self,
        db_config: DatabaseConfig,
        cache=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the seat inventory guard.

        Args:
            db_config: Database configuration owning the session factory
            cache: Optional RideCache to invalidate after own-transaction updates
            clock: Source of the current time
        """
        self.db_config = db_config
        self.cache = cache
        self.clock = clock

    def reserve_seats(
        self,
        ride_id: int,
        seat_count: int,
        session: Optional[Session] = None,
        bookable_at: Optional[datetime] = None,
    ) -> int:
        """
        Take ``seat_count`` seats off a ride if that many are left.

        With ``bookable_at`` the same statement also requires the ride to be
        open for booking and to depart after that time.

        Args:
            ride_id: Ride to book seats on
            seat_count: Number of seats, 1 to 8
            session: Optional caller-owned session to join
            bookable_at: Booking time the ride must still be open at

        Returns:
            Remaining available seats after the decrement

        Raises:
            InvalidSeatCount: seat_count outside 1-8 (nothing touched)
            RideNotFound: No such ride
            RideNotBookable: Ride no longer open (only with bookable_at)
            RideAlreadyDeparted: Ride departs at or before bookable_at
            InsufficientSeats: Fewer than seat_count seats left (nothing changed)
        """
        validate_seat_count(seat_count)

        if session is not None:
            return self._reserve(session, ride_id, seat_count, bookable_at)

        with self.db_config.get_session_context() as own_session:
            remaining = self._reserve(own_session, ride_id, seat_count, bookable_at)
        self._invalidate(ride_id)
        return remaining

    def release_seats(self, ride_id: int, seat_count: int, session: Optional[Session] = None) -> int:
        """
        Give ``seat_count`` seats back to a ride without exceeding its capacity.

        Returns:
            Remaining available seats after the increment

        Raises:
            InvalidSeatCount: seat_count outside 1-8
            RideNotFound: No such ride
            SeatRestockOverflow: The counter would exceed seat_capacity
        """
        validate_seat_count(seat_count)

        if session is not None:
            return self._release(session, ride_id, seat_count)

        with self.db_config.get_session_context() as own_session:
            remaining = self._release(own_session, ride_id, seat_count)
        self._invalidate(ride_id)
        return remaining

    def reconcile(self, ride_id: int) -> SeatReconciliationModel:
        """
        Compare the stored counter with capacity minus booked seats.

        Never writes. A positive drift means the counter shows more seats
        than the bookings account for, e.g. after cancellations with restock
        disabled.

        Raises:
            RideNotFound: No such ride
        """
        with self.db_config.get_session_context() as session:
            ride = RideDAO(session).get(ride_id)
            if ride is None:
                raise RideNotFound(ride_id=ride_id)

            booked = BookingDAO(session).sum_confirmed_seats(ride_id, SEAT_HOLDING_STATUSES)
            expected = ride.seat_capacity - booked

            report = SeatReconciliationModel(
                ride_id=ride_id,
                seat_capacity=ride.seat_capacity,
                available_seats=ride.available_seats,
                booked_seats=booked,
                expected_available_seats=expected,
                drift=ride.available_seats - expected,
                checked_at=self.clock(),
            )

        if report.is_consistent:
            logger.info(f"Ride {ride_id} seat counter consistent ({report.available_seats} left)")
        else:
            logger.warning(
                f"Ride {ride_id} seat counter drift {report.drift:+d} "
                f"(stored {report.available_seats}, expected {report.expected_available_seats})"
            )
        return report

    def _reserve(
        self, session: Session, ride_id: int, seat_count: int, bookable_at: Optional[datetime] = None
    ) -> int:
        rides = RideDAO(session)
        statuses = BOOKABLE_RIDE_STATUSES if bookable_at is not None else None

        if rides.conditional_decrement_seats(
            ride_id, seat_count, self.clock(), statuses=statuses, departs_after=bookable_at
        ) == 1:
            remaining = rides.available_seats(ride_id)
            logger.info(f"Reserved {seat_count} seat(s) on ride {ride_id}, {remaining} left")
            return remaining

        # Nothing changed; read the row again to tell which condition failed
        ride = rides.get(ride_id)
        if ride is None:
            raise RideNotFound(ride_id=ride_id)

        if bookable_at is not None:
            if ride.status not in BOOKABLE_RIDE_STATUSES:
                logger.warning(f"Reservation on ride {ride_id} rejected: ride is {ride.status}")
                raise RideNotBookable(f"Ride {ride_id} is {ride.status}", ride_id=ride_id, status=ride.status)
            if ride.departure_at <= bookable_at:
                logger.warning(f"Reservation on ride {ride_id} rejected: ride has departed")
                raise RideAlreadyDeparted(ride_id=ride_id)

        available = ride.available_seats
        logger.warning(
            f"Reservation of {seat_count} seat(s) on ride {ride_id} rejected: {available} left"
        )
        raise InsufficientSeats(ride_id=ride_id, requested=seat_count, available=available)

    def _release(self, session: Session, ride_id: int, seat_count: int) -> int:
        rides = RideDAO(session)

        if rides.conditional_increment_seats(ride_id, seat_count, self.clock()) == 1:
            remaining = rides.available_seats(ride_id)
            logger.info(f"Released {seat_count} seat(s) on ride {ride_id}, {remaining} left")
            return remaining

        if not rides.exists(ride_id):
            raise RideNotFound(ride_id=ride_id)

        logger.warning(f"Release of {seat_count} seat(s) on ride {ride_id} would exceed capacity")
        raise SeatRestockOverflow(ride_id=ride_id, released=seat_count)

    def _invalidate(self, ride_id: int) -> None:
        if self.cache is not None:
            self.cache.invalidate_ride(ride_id)
