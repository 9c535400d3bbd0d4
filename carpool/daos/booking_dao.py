"""
Data access for booking records.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ..database.models import Booking, Ride

logger = logging.getLogger(__name__)


class BookingDAO:
    """Booking record store bound to one SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, **fields: Any) -> Booking:
        booking = Booking(**fields)
        self.session.add(booking)
        self.session.flush()
        logger.debug(f"Inserted booking {booking.booking_id} for ride {booking.ride_id}")
        return booking

    def get(self, booking_id: int) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    def update_status(
        self, booking_id: int, new_status: str, expected_statuses: Iterable[str], now: datetime
    ) -> int:
        """
        Move a booking to ``new_status`` if it is in one of ``expected_statuses``.

        Returns:
            Affected row count
        """
        rowcount = (
            self.session.query(Booking)
            .filter(Booking.booking_id == booking_id, Booking.status.in_(list(expected_statuses)))
            .update(
                {
                    Booking.status: new_status,
                    Booking.updated_at: case((Booking.updated_at > now, Booking.updated_at), else_=now),
                },
                synchronize_session=False,
            )
        )
        booking = self.session.identity_map.get(Session.identity_key(Booking, booking_id))
        if booking is not None:
            self.session.expire(booking)
        return rowcount

    def list_confirmed_for_ride(self, ride_id: int) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(Booking.ride_id == ride_id, Booking.status == "confirmed")
            .order_by(Booking.created_at.asc(), Booking.booking_id.asc())
            .all()
        )

    def sum_confirmed_seats(self, ride_id: int, statuses: Iterable[str] = ("confirmed",)) -> int:
        total = (
            self.session.query(func.coalesce(func.sum(Booking.seat_count), 0))
            .filter(Booking.ride_id == ride_id, Booking.status.in_(list(statuses)))
            .scalar()
        )
        return int(total or 0)

    def find_by_passenger(self, passenger_id: int) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(Booking.passenger_id == passenger_id)
            .order_by(Booking.created_at.desc(), Booking.booking_id.desc())
            .all()
        )

    def find_by_driver(self, driver_id: int) -> List[Booking]:
        """Bookings made on any ride the driver offers, newest first."""
        return (
            self.session.query(Booking)
            .join(Ride, Booking.ride_id == Ride.ride_id)
            .filter(Ride.driver_id == driver_id)
            .order_by(Booking.created_at.desc(), Booking.booking_id.desc())
            .all()
        )

    def find_pending(self) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(Booking.status == "pending")
            .order_by(Booking.created_at.asc(), Booking.booking_id.asc())
            .all()
        )
