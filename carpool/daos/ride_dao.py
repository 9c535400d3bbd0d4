"""
Data access for ride records.

All seat counter changes go through the two conditional updates below.
They are single statements whose WHERE clause carries the guard, so the
database serializes concurrent writers on the ride row and the affected row
count tells the caller whether the guard held.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import and_, case
from sqlalchemy.orm import Session

from ..database.models import Ride

logger = logging.getLogger(__name__)


class RideDAO:
    """Ride record store bound to one SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, ride_id: int) -> Optional[Ride]:
        return self.session.get(Ride, ride_id)

    def exists(self, ride_id: int) -> bool:
        return self.session.query(Ride.ride_id).filter(Ride.ride_id == ride_id).first() is not None

    def create(self, **fields: Any) -> Ride:
        """
        Insert a new ride and flush it so the id is assigned.

        Args:
            **fields: Column values for the new ride

        Returns:
            The persisted Ride instance
        """
        ride = Ride(**fields)
        self.session.add(ride)
        self.session.flush()
        logger.debug(f"Inserted ride {ride.ride_id}")
        return ride

    def available_seats(self, ride_id: int) -> Optional[int]:
        """Read the seat counter straight from the database."""
        return self.session.query(Ride.available_seats).filter(Ride.ride_id == ride_id).scalar()

    def conditional_decrement_seats(
        self,
        ride_id: int,
        seat_count: int,
        now: datetime,
        statuses: Optional[Iterable[str]] = None,
        departs_after: Optional[datetime] = None,
    ) -> int:
        """
        Decrement the seat counter only if enough seats are left.

        Equivalent to:
            UPDATE ride SET available_seats = available_seats - :n, updated_at = :now
            WHERE ride_id = :id AND available_seats >= :n
              [AND status IN (:statuses)] [AND departure_at > :departs_after]

        The optional predicates let a booking take seats only while the ride
        is still open, within the same statement.

        Returns:
            Affected row count (1 on success, 0 if the guard did not hold)
        """
        conditions = [Ride.ride_id == ride_id, Ride.available_seats >= seat_count]
        if statuses is not None:
            conditions.append(Ride.status.in_(list(statuses)))
        if departs_after is not None:
            conditions.append(Ride.departure_at > departs_after)

        rowcount = (
            self.session.query(Ride)
            .filter(*conditions)
            .update(
                {
                    Ride.available_seats: Ride.available_seats - seat_count,
                    Ride.updated_at: self._touch(now),
                },
                synchronize_session=False,
            )
        )
        self._expire_cached(ride_id)
        return rowcount

    def conditional_increment_seats(self, ride_id: int, seat_count: int, now: datetime) -> int:
        """
        Increment the seat counter only if it stays within the ride capacity.

        Returns:
            Affected row count (1 on success, 0 if the guard did not hold)
        """
        rowcount = (
            self.session.query(Ride)
            .filter(
                Ride.ride_id == ride_id,
                Ride.available_seats + seat_count <= Ride.seat_capacity,
            )
            .update(
                {
                    Ride.available_seats: Ride.available_seats + seat_count,
                    Ride.updated_at: self._touch(now),
                },
                synchronize_session=False,
            )
        )
        self._expire_cached(ride_id)
        return rowcount

    def update_status(
        self, ride_id: int, new_status: str, expected_statuses: Iterable[str], now: datetime
    ) -> int:
        """
        Move a ride to ``new_status`` if it is currently in one of ``expected_statuses``.

        Returns:
            Affected row count
        """
        rowcount = (
            self.session.query(Ride)
            .filter(Ride.ride_id == ride_id, Ride.status.in_(list(expected_statuses)))
            .update(
                {Ride.status: new_status, Ride.updated_at: self._touch(now)},
                synchronize_session=False,
            )
        )
        self._expire_cached(ride_id)
        return rowcount

    def update_fields(
        self, ride_id: int, values: Dict[str, Any], expected_status: str, now: datetime
    ) -> int:
        """
        Update descriptive ride columns while the ride is in ``expected_status``.

        Seat columns are refused here; only the conditional seat updates may
        change them.
        """
        forbidden = {"available_seats", "seat_capacity"} & set(values)
        if forbidden:
            raise ValueError(f"Seat columns cannot be updated directly: {sorted(forbidden)}")

        update_values = {getattr(Ride, name): value for name, value in values.items()}
        update_values[Ride.updated_at] = self._touch(now)

        rowcount = (
            self.session.query(Ride)
            .filter(Ride.ride_id == ride_id, Ride.status == expected_status)
            .update(update_values, synchronize_session=False)
        )
        self._expire_cached(ride_id)
        return rowcount

    def search(
        self,
        now: datetime,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure_date: Optional[date] = None,
        min_seats: Optional[int] = None,
        statuses: Iterable[str] = ("active",),
    ) -> List[Ride]:
        """
        Find bookable rides ordered by departure.

        Origin and destination match case-insensitively anywhere in the text.
        """
        filters = [Ride.status.in_(list(statuses)), Ride.departure_at > now]

        if origin:
            filters.append(Ride.origin.ilike(f"%{origin}%"))

        if destination:
            filters.append(Ride.destination.ilike(f"%{destination}%"))

        if departure_date:
            start_of_day = datetime.combine(departure_date, datetime.min.time())
            end_of_day = start_of_day + timedelta(days=1)
            filters.append(and_(Ride.departure_at >= start_of_day, Ride.departure_at < end_of_day))

        if min_seats:
            filters.append(Ride.available_seats >= min_seats)
        else:
            filters.append(Ride.available_seats > 0)

        return (
            self.session.query(Ride)
            .filter(and_(*filters))
            .order_by(Ride.departure_at.asc(), Ride.ride_id.asc())
            .all()
        )

    def find_by_driver(self, driver_id: int) -> List[Ride]:
        return (
            self.session.query(Ride)
            .filter(Ride.driver_id == driver_id)
            .order_by(Ride.departure_at.desc(), Ride.ride_id.desc())
            .all()
        )

    def find_recent(self, limit: int = 10) -> List[Ride]:
        return (
            self.session.query(Ride)
            .filter(Ride.status == "active")
            .order_by(Ride.created_at.desc(), Ride.ride_id.desc())
            .limit(limit)
            .all()
        )

    def find_by_max_price(self, max_price: Decimal, now: datetime) -> List[Ride]:
        return (
            self.session.query(Ride)
            .filter(
                Ride.status == "active",
                Ride.departure_at > now,
                Ride.price <= max_price,
            )
            .order_by(Ride.price.asc(), Ride.departure_at.asc())
            .all()
        )

    @staticmethod
    def _touch(now: datetime):
        # updated_at never moves backwards
        return case((Ride.updated_at > now, Ride.updated_at), else_=now)

    def _expire_cached(self, ride_id: int) -> None:
        """Expire the in-session copy of a ride after a bulk UPDATE."""
        ride = self.session.identity_map.get(Session.identity_key(Ride, ride_id))
        if ride is not None:
            self.session.expire(ride)
