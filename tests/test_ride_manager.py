"""
Tests for the ride lifecycle manager.
"""

from datetime import timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from carpool.daos.vehicle_dao import VehicleDAO
from carpool.errors import (
    InvalidInputError,
    InvalidSearch,
    InvalidSeatCount,
    NoVehicleRegistered,
    NotCancellable,
    NotEditable,
    NotStartable,
    RideNotFound,
)
from carpool.models.enums import RideStatus
from carpool.models.ride import RideCreateModel, RideUpdateModel
from carpool.services.ride_manager import RideLifecycleManager
from carpool.utils.config import CarpoolConfig


def make_ride(ride_manager, driver_id, departure, origin="Paris", destination="Lyon", seats=3, price="20.00"):
    return ride_manager.create(
        driver_id,
        RideCreateModel(
            origin=origin,
            destination=destination,
            departure_at=departure,
            seat_capacity=seats,
            price=Decimal(price),
        ),
    )


class TestCreateRide:
    """Ride publication."""

    def test_create_sets_initial_state(self, ride_manager, driver_id, ride_data, clock):
        ride = ride_manager.create(driver_id, ride_data)

        assert ride.ride_id is not None
        assert ride.status == RideStatus.ACTIVE
        assert ride.seat_capacity == 3
        assert ride.available_seats == 3
        assert ride.price == Decimal("25.50")
        assert ride.created_at == clock.now
        assert ride.updated_at == clock.now

    def test_default_arrival_is_two_hours_after_departure(self, ride_manager, driver_id, ride_data):
        ride = ride_manager.create(driver_id, ride_data)
        assert ride.arrival_at == ride_data.departure_at + timedelta(hours=2)

    def test_explicit_arrival_is_kept(self, ride_manager, driver_id, ride_data):
        arrival = ride_data.departure_at + timedelta(hours=5)
        ride = ride_manager.create(driver_id, ride_data.model_copy(update={"arrival_at": arrival}))
        assert ride.arrival_at == arrival

    def test_aware_departure_is_stored_in_local_time(self, ride_manager, driver_id, ride_data):
        local_departure = ride_data.departure_at
        aware = local_departure.astimezone(timezone(timedelta(hours=5)))

        data = RideCreateModel(**{**ride_data.model_dump(), "departure_at": aware})

        ride = ride_manager.create(driver_id, data)
        summary = ride_manager.get_summary(ride.ride_id)

        assert ride.departure_at == local_departure
        assert summary.departure_at == local_departure
        assert ride_manager.summarize(ride).is_active

    def test_requires_vehicle(self, ride_manager, make_user, ride_data):
        walker = make_user("walker@example.com")
        with pytest.raises(NoVehicleRegistered) as exc_info:
            ride_manager.create(walker, ride_data)
        assert exc_info.value.status_code == 400

    def test_uses_latest_vehicle(self, ride_manager, driver_id, ride_data, db_config):
        with db_config.get_session_context() as session:
            newest = VehicleDAO(session).add_vehicle(driver_id, model="Zoe", energy="electric").vehicle_id

        ride = ride_manager.create(driver_id, ride_data)
        assert ride.vehicle_id == newest

    def test_default_trip_duration_is_configurable(self, db_config, clock, driver_id, ride_data):
        manager = RideLifecycleManager(db_config, config=CarpoolConfig(default_trip_hours=4), clock=clock)
        ride = manager.create(driver_id, ride_data)
        assert ride.arrival_at == ride_data.departure_at + timedelta(hours=4)


class TestStartRide:
    """Start window is inclusive: 30 minutes before to 2 hours after departure."""

    def test_start_too_early(self, ride_manager, ride, clock):
        clock.set(ride.departure_at - timedelta(minutes=45))
        with pytest.raises(NotStartable):
            ride_manager.start(ride.ride_id)
        assert ride_manager.get(ride.ride_id).status == RideStatus.ACTIVE

    def test_start_ten_minutes_before_completes(self, ride_manager, ride, clock):
        clock.set(ride.departure_at - timedelta(minutes=10))
        started = ride_manager.start(ride.ride_id)
        assert started.status == RideStatus.COMPLETED

    @pytest.mark.parametrize("offset", [timedelta(minutes=-30), timedelta(hours=2)])
    def test_window_bounds_are_inclusive(self, ride_manager, ride, clock, offset):
        clock.set(ride.departure_at + offset)
        assert ride_manager.start(ride.ride_id).status == RideStatus.COMPLETED

    @pytest.mark.parametrize("offset", [timedelta(minutes=-30, seconds=-1), timedelta(hours=2, seconds=1)])
    def test_outside_window(self, ride_manager, ride, clock, offset):
        clock.set(ride.departure_at + offset)
        with pytest.raises(NotStartable):
            ride_manager.start(ride.ride_id)

    def test_start_twice(self, ride_manager, ride, clock):
        clock.set(ride.departure_at)
        ride_manager.start(ride.ride_id)
        with pytest.raises(NotStartable):
            ride_manager.start(ride.ride_id)

    def test_start_cancelled_ride(self, ride_manager, ride, clock):
        ride_manager.cancel(ride.ride_id)
        clock.set(ride.departure_at)
        with pytest.raises(NotStartable):
            ride_manager.start(ride.ride_id)

    def test_start_unknown_ride(self, ride_manager):
        with pytest.raises(RideNotFound):
            ride_manager.start(404)


class TestCancelRide:
    """Cancellation only from active."""

    def test_cancel_active(self, ride_manager, ride):
        assert ride_manager.cancel(ride.ride_id).status == RideStatus.CANCELLED

    def test_cancel_completed(self, ride_manager, ride, clock):
        clock.set(ride.departure_at)
        ride_manager.start(ride.ride_id)
        with pytest.raises(NotCancellable) as exc_info:
            ride_manager.cancel(ride.ride_id)
        assert exc_info.value.status_code == 400

    def test_cancel_twice(self, ride_manager, ride):
        ride_manager.cancel(ride.ride_id)
        with pytest.raises(NotCancellable):
            ride_manager.cancel(ride.ride_id)

    def test_cancel_unknown_ride(self, ride_manager):
        with pytest.raises(RideNotFound):
            ride_manager.cancel(404)


class TestUpdateRide:
    """Editing descriptive fields."""

    def test_update_fields(self, ride_manager, ride, clock):
        clock.advance(minutes=1)
        updated = ride_manager.update(
            ride.ride_id, RideUpdateModel(price=Decimal("30"), description="Leaving from Bercy")
        )
        assert updated.price == Decimal("30.00")
        assert updated.description == "Leaving from Bercy"
        assert updated.available_seats == 3
        assert updated.updated_at == clock.now

    def test_seat_fields_are_not_accepted(self):
        with pytest.raises(ValidationError):
            RideUpdateModel(available_seats=8)
        with pytest.raises(ValidationError):
            RideUpdateModel(seat_capacity=8)

    def test_update_cancelled_ride(self, ride_manager, ride):
        ride_manager.cancel(ride.ride_id)
        with pytest.raises(NotEditable) as exc_info:
            ride_manager.update(ride.ride_id, RideUpdateModel(description="too late"))
        assert exc_info.value.status_code == 403

    def test_arrival_before_departure(self, ride_manager, ride):
        with pytest.raises(InvalidInputError):
            ride_manager.update(ride.ride_id, RideUpdateModel(arrival_at=ride.departure_at - timedelta(hours=1)))

    def test_update_unknown_ride(self, ride_manager):
        with pytest.raises(RideNotFound):
            ride_manager.update(404, RideUpdateModel(description="x"))


class TestRideSummary:
    """Derived flags computed at read time."""

    def test_future_active_ride(self, ride_manager, ride):
        summary = ride_manager.get_summary(ride.ride_id)
        assert summary.is_active
        assert summary.can_be_booked
        assert summary.remaining_seats == 3
        assert summary.booked_seats_view == 0

    def test_departed_ride_is_not_active(self, ride_manager, ride, clock):
        clock.set(ride.departure_at)
        summary = ride_manager.get_summary(ride.ride_id)
        assert not summary.is_active
        assert not summary.can_be_booked

    def test_full_ride_cannot_be_booked(self, ride_manager, booking_manager, ride, passenger_id):
        booking_manager.book(passenger_id, ride.ride_id, 3)
        summary = ride_manager.get_summary(ride.ride_id)
        assert summary.is_active
        assert not summary.can_be_booked
        assert summary.remaining_seats == 0
        assert summary.booked_seats_view == 3

    def test_completed_bookings_stay_in_booked_view(self, ride_manager, booking_manager, ride, passenger_id, clock):
        result = booking_manager.book(passenger_id, ride.ride_id, 2)
        clock.set(ride.departure_at)
        ride_manager.start(ride.ride_id)
        booking_manager.complete(result.booking.booking_id)

        summary = ride_manager.get_summary(ride.ride_id)

        assert summary.booked_seats_view == 2
        assert summary.remaining_seats == 1

    def test_get_unknown_ride(self, ride_manager):
        with pytest.raises(RideNotFound):
            ride_manager.get(404)
        with pytest.raises(RideNotFound):
            ride_manager.get_summary(404)


class TestSearchRides:
    """Search over bookable rides."""

    @pytest.fixture
    def rides(self, ride_manager, driver_id, clock):
        tomorrow = clock.now + timedelta(days=1)
        return {
            "paris_lyon": make_ride(ride_manager, driver_id, tomorrow, "Paris Gare de Lyon", "Lyon Part-Dieu"),
            "paris_lille": make_ride(ride_manager, driver_id, tomorrow + timedelta(hours=3), "Paris", "Lille", seats=1),
            "later": make_ride(ride_manager, driver_id, tomorrow + timedelta(days=2), "Paris", "Lyon"),
            "cancelled": make_ride(ride_manager, driver_id, tomorrow, "Paris", "Lyon"),
        }

    def test_partial_case_insensitive_match(self, ride_manager, rides):
        ride_manager.cancel(rides["cancelled"].ride_id)

        found = ride_manager.search(origin="paris", destination="LYON")

        assert [r.ride_id for r in found] == [rides["paris_lyon"].ride_id, rides["later"].ride_id]

    def test_same_day_filter(self, ride_manager, rides, clock):
        day = (clock.now + timedelta(days=1)).date()
        found = ride_manager.search(departure_date=day)
        assert {r.ride_id for r in found} == {
            rides["paris_lyon"].ride_id, rides["paris_lille"].ride_id, rides["cancelled"].ride_id
        }

    def test_passenger_filter(self, ride_manager, rides):
        found = ride_manager.search(destination="lille", passengers=2)
        assert found == []

    def test_departed_rides_are_excluded(self, ride_manager, rides, clock):
        clock.advance(days=2)
        assert [r.ride_id for r in ride_manager.search()] == [rides["later"].ride_id]

    @pytest.mark.parametrize("passengers", [0, 9])
    def test_invalid_passenger_count(self, ride_manager, passengers):
        with pytest.raises(InvalidSeatCount):
            ride_manager.search(passengers=passengers)

    def test_past_date(self, ride_manager, clock):
        with pytest.raises(InvalidSearch):
            ride_manager.search(departure_date=clock.now.date() - timedelta(days=1))

    def test_today_is_allowed(self, ride_manager, clock):
        assert ride_manager.search(departure_date=clock.now.date()) == []


class TestRideListings:
    """Driver, recent and price listings."""

    def test_list_for_driver_latest_departure_first(self, ride_manager, driver_id, clock):
        first = make_ride(ride_manager, driver_id, clock.now + timedelta(days=1))
        second = make_ride(ride_manager, driver_id, clock.now + timedelta(days=3))
        assert [r.ride_id for r in ride_manager.list_for_driver(driver_id)] == [second.ride_id, first.ride_id]

    def test_list_recent_limits_and_orders(self, ride_manager, driver_id, clock):
        created = []
        for _ in range(12):
            clock.advance(minutes=1)
            created.append(make_ride(ride_manager, driver_id, clock.now + timedelta(days=1)))

        recent = ride_manager.list_recent()

        assert len(recent) == 10
        assert recent[0].ride_id == created[-1].ride_id

    def test_list_by_max_price(self, ride_manager, driver_id, clock):
        tomorrow = clock.now + timedelta(days=1)
        cheap = make_ride(ride_manager, driver_id, tomorrow, price="12.00")
        mid = make_ride(ride_manager, driver_id, tomorrow, price="18.50")
        make_ride(ride_manager, driver_id, tomorrow, price="40.00")

        found = ride_manager.list_by_max_price(Decimal("20"))

        assert [r.ride_id for r in found] == [cheap.ride_id, mid.ride_id]
