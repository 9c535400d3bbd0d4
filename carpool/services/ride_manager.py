"""
Ride lifecycle management.

Rides start ``active`` and end either ``completed`` (the driver started the
trip) or ``cancelled``. Both transitions are conditional updates on the
current status, so two concurrent transitions cannot both succeed.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from ..daos.booking_dao import BookingDAO
from ..daos.ride_dao import RideDAO
from ..daos.vehicle_dao import VehicleDAO
from ..database.config import DatabaseConfig
from ..errors import (
    InvalidInputError,
    InvalidSearch,
    NoVehicleRegistered,
    NotCancellable,
    NotEditable,
    NotStartable,
    RideNotFound,
)
from ..models.enums import BOOKABLE_RIDE_STATUSES, RideStatus
from ..models.ride import RideCreateModel, RideModel, RideSummaryModel, RideUpdateModel
from ..utils.config import CarpoolConfig
from .seat_inventory import SEAT_HOLDING_STATUSES, validate_seat_count

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class RideLifecycleManager:
    """
    Creates rides and drives their status transitions.

    Reads go through the optional RideCache; every mutation invalidates the
    cached ride once the transaction has committed.
    """

    def __init__(
        self,
        db_config: DatabaseConfig,
        config: Optional[CarpoolConfig] = None,
        cache=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_config = db_config
        self.config = config or CarpoolConfig()
        self.cache = cache
        self.clock = clock

        self.start_early = timedelta(minutes=self.config.ride_start_early_minutes)
        self.start_late = timedelta(minutes=self.config.ride_start_late_minutes)
        self.default_trip = timedelta(hours=self.config.default_trip_hours)

    # Creation and lookup

    def create(self, driver_id: int, data: RideCreateModel) -> RideModel:
        """
        Publish a new ride for a driver.

        The driver's most recently registered vehicle is attached to the
        ride. The seat counter starts at the offered capacity.

        Raises:
            NoVehicleRegistered: The driver has no vehicle
        """
        now = self.clock()

        with self.db_config.get_session_context() as session:
            vehicle_id = VehicleDAO(session).latest_vehicle_id(driver_id)
            if vehicle_id is None:
                raise NoVehicleRegistered(driver_id=driver_id)

            ride = RideDAO(session).create(
                driver_id=driver_id,
                vehicle_id=vehicle_id,
                origin=data.origin,
                destination=data.destination,
                departure_at=data.departure_at,
                arrival_at=data.arrival_at or data.departure_at + self.default_trip,
                seat_capacity=data.seat_capacity,
                available_seats=data.seat_capacity,
                price=data.price.quantize(CENTS),
                description=data.description,
                conditions=data.conditions,
                status=RideStatus.ACTIVE.value,
                created_at=now,
                updated_at=now,
            )
            result = RideModel.model_validate(ride)

        logger.info(
            f"Driver {driver_id} published ride {result.ride_id} "
            f"({result.origin} -> {result.destination}, {result.seat_capacity} seats)"
        )
        self._invalidate_searches()
        return result

    def get(self, ride_id: int) -> RideModel:
        """
        Raises:
            RideNotFound: No such ride
        """
        with self.db_config.get_session_context() as session:
            ride = RideDAO(session).get(ride_id)
            if ride is None:
                raise RideNotFound(ride_id=ride_id)
            return RideModel.model_validate(ride)

    def get_summary(self, ride_id: int) -> RideSummaryModel:
        """
        Ride with its derived flags, served from the cache when possible.

        Raises:
            RideNotFound: No such ride
        """
        generation = None
        if self.cache is not None:
            cached = self.cache.get_ride(ride_id)
            if cached is not None:
                return self.summarize(cached.ride, cached.booked_seats_view)
            generation = self.cache.current_generation()

        with self.db_config.get_session_context() as session:
            ride = RideDAO(session).get(ride_id)
            if ride is None:
                raise RideNotFound(ride_id=ride_id)
            model = RideModel.model_validate(ride)
            booked_view = BookingDAO(session).sum_confirmed_seats(ride_id, SEAT_HOLDING_STATUSES)

        if generation is not None:
            self.cache.set_ride(model, booked_view, generation)

        return self.summarize(model, booked_view)

    def summarize(self, ride: RideModel, booked_seats_view: int = 0) -> RideSummaryModel:
        """Attach the time-dependent flags to a ride record."""
        is_active = ride.status == RideStatus.ACTIVE and ride.departure_at > self.clock()
        return RideSummaryModel(
            **ride.model_dump(),
            is_active=is_active,
            can_be_booked=is_active and ride.available_seats > 0,
            remaining_seats=ride.available_seats,
            booked_seats_view=booked_seats_view,
        )

    # Transitions

    def start(self, ride_id: int) -> RideModel:
        """
        Start a ride, which marks it completed.

        Allowed from 30 minutes before to 2 hours after departure, bounds
        included.

        Raises:
            RideNotFound: No such ride
            NotStartable: Ride not active or outside the start window
        """
        now = self.clock()

        with self.db_config.get_session_context() as session:
            rides = RideDAO(session)
            ride = rides.get(ride_id)
            if ride is None:
                raise RideNotFound(ride_id=ride_id)

            if ride.status != RideStatus.ACTIVE.value:
                raise NotStartable(f"Ride {ride_id} is {ride.status}", ride_id=ride_id, status=ride.status)

            window_opens = ride.departure_at - self.start_early
            window_closes = ride.departure_at + self.start_late
            if not window_opens <= now <= window_closes:
                raise NotStartable(
                    ride_id=ride_id,
                    window_opens=window_opens.isoformat(),
                    window_closes=window_closes.isoformat(),
                )

            if rides.update_status(ride_id, RideStatus.COMPLETED.value, [RideStatus.ACTIVE.value], now) == 0:
                raise NotStartable(f"Ride {ride_id} changed status concurrently", ride_id=ride_id)

            result = RideModel.model_validate(rides.get(ride_id))

        logger.info(f"Ride {ride_id} started and marked completed")
        self._invalidate(ride_id)
        return result

    def cancel(self, ride_id: int) -> RideModel:
        """
        Cancel an active ride.

        Raises:
            RideNotFound: No such ride
            NotCancellable: Ride is not active
        """
        now = self.clock()

        with self.db_config.get_session_context() as session:
            rides = RideDAO(session)
            ride = rides.get(ride_id)
            if ride is None:
                raise RideNotFound(ride_id=ride_id)

            if ride.status != RideStatus.ACTIVE.value:
                raise NotCancellable(f"Ride {ride_id} is {ride.status}", ride_id=ride_id, status=ride.status)

            if rides.update_status(ride_id, RideStatus.CANCELLED.value, [RideStatus.ACTIVE.value], now) == 0:
                raise NotCancellable(f"Ride {ride_id} changed status concurrently", ride_id=ride_id)

            result = RideModel.model_validate(rides.get(ride_id))

        logger.info(f"Ride {ride_id} cancelled")
        self._invalidate(ride_id)
        return result

    def update(self, ride_id: int, data: RideUpdateModel) -> RideModel:
        """
        Edit the descriptive fields of an active ride.

        Seat capacity and the seat counter are not editable here.

        Raises:
            RideNotFound: No such ride
            NotEditable: Ride is not active
            InvalidInputError: Arrival would precede departure
        """
        values: Dict[str, Any] = data.model_dump(exclude_unset=True)
        now = self.clock()

        with self.db_config.get_session_context() as session:
            rides = RideDAO(session)
            ride = rides.get(ride_id)
            if ride is None:
                raise RideNotFound(ride_id=ride_id)

            if ride.status != RideStatus.ACTIVE.value:
                raise NotEditable(f"Ride {ride_id} is {ride.status}", ride_id=ride_id, status=ride.status)

            departure = values.get("departure_at") or ride.departure_at
            arrival = values.get("arrival_at") or ride.arrival_at
            if arrival < departure:
                raise InvalidInputError("Arrival cannot precede departure", ride_id=ride_id)

            if values.get("price") is not None:
                values["price"] = values["price"].quantize(CENTS)

            for required in ("origin", "destination", "departure_at", "arrival_at", "price"):
                if required in values and values[required] is None:
                    del values[required]

            if values and rides.update_fields(ride_id, values, RideStatus.ACTIVE.value, now) == 0:
                raise NotEditable(f"Ride {ride_id} changed status concurrently", ride_id=ride_id)

            result = RideModel.model_validate(rides.get(ride_id))

        logger.info(f"Ride {ride_id} updated: {sorted(values)}")
        self._invalidate(ride_id)
        return result

    # Queries

    def search(
        self,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure_date: Optional[date] = None,
        passengers: Optional[int] = None,
    ) -> List[RideModel]:
        """
        Find bookable rides, earliest departure first.

        Args:
            origin: Case-insensitive partial match on the departure place
            destination: Case-insensitive partial match on the arrival place
            departure_date: Only rides leaving on this day
            passengers: Only rides with at least this many seats left (1-8)

        Raises:
            InvalidSeatCount: passengers outside 1-8
            InvalidSearch: departure_date in the past
        """
        if passengers is not None:
            validate_seat_count(passengers)

        now = self.clock()
        if departure_date is not None and departure_date < now.date():
            raise InvalidSearch("Departure date cannot be in the past", departure_date=departure_date.isoformat())

        criteria = {
            "origin": origin.lower() if origin else None,
            "destination": destination.lower() if destination else None,
            "departure_date": departure_date.isoformat() if departure_date else None,
            "passengers": passengers,
        }

        if self.cache is not None:
            cached = self.cache.get_search(criteria)
            if cached is not None:
                return [ride for ride in cached if ride.departure_at > now]

        with self.db_config.get_session_context() as session:
            rides = RideDAO(session).search(
                now,
                origin=origin,
                destination=destination,
                departure_date=departure_date,
                min_seats=passengers,
                statuses=BOOKABLE_RIDE_STATUSES,
            )
            results = [RideModel.model_validate(ride) for ride in rides]

        if self.cache is not None:
            self.cache.set_search(criteria, results)

        logger.debug(f"Ride search {criteria} returned {len(results)} ride(s)")
        return results

    def list_for_driver(self, driver_id: int) -> List[RideModel]:
        """Every ride of a driver, latest departure first."""
        with self.db_config.get_session_context() as session:
            return [RideModel.model_validate(ride) for ride in RideDAO(session).find_by_driver(driver_id)]

    def list_recent(self, limit: int = 10) -> List[RideModel]:
        """Most recently published active rides."""
        with self.db_config.get_session_context() as session:
            return [RideModel.model_validate(ride) for ride in RideDAO(session).find_recent(limit)]

    def list_by_max_price(self, max_price: Decimal) -> List[RideModel]:
        """Upcoming active rides costing at most ``max_price`` per seat, cheapest first."""
        with self.db_config.get_session_context() as session:
            rides = RideDAO(session).find_by_max_price(Decimal(str(max_price)), self.clock())
            return [RideModel.model_validate(ride) for ride in rides]

    def _invalidate(self, ride_id: int) -> None:
        if self.cache is not None:
            self.cache.invalidate_ride(ride_id)

    def _invalidate_searches(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_searches()
