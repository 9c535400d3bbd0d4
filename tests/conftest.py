"""
Shared fixtures for the carpool test suite.

Unit flows run on an in-memory SQLite database; tests that need real
concurrency build their own file-backed database under tmp_path.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from valkey.exceptions import ConnectionError as ValkeyServerConnectionError

from carpool.cache.ride_cache import RideCache
from carpool.daos.vehicle_dao import VehicleDAO
from carpool.database.config import DatabaseConfig
from carpool.database.models import User
from carpool.models.ride import RideCreateModel
from carpool.services.booking_manager import BookingLifecycleManager
from carpool.services.ride_manager import RideLifecycleManager
from carpool.services.seat_inventory import SeatInventoryGuard
from carpool.utils.config import CarpoolConfig


class FakeClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now


class MockValkeyClient:
    """In-memory stand-in for a connected ValkeyClient."""

    def __init__(self):
        self.data = {}
        self.client = self
        self.is_connected = True
        self.fail = False

    def _check(self):
        if self.fail:
            raise ValkeyServerConnectionError("Connection refused")

    def ping(self):
        self._check()
        return True

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        return True

    def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    def incr(self, key):
        self._check()
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

    def health_check(self, force=False):
        return not self.fail

    def get_connection_info(self):
        return {"is_connected": self.is_connected, "config": "mock"}

    def disconnect(self):
        self.is_connected = False


def make_database(url: str) -> DatabaseConfig:
    db_config = DatabaseConfig(url)
    db_config.initialize()
    db_config.create_tables()
    return db_config


def add_user(db_config: DatabaseConfig, email: str, with_vehicle: bool = False) -> int:
    """Insert a user (optionally owning a vehicle) and return the id."""
    with db_config.get_session_context() as session:
        user = User(email=email, first_name="Test", last_name=email.split("@")[0])
        session.add(user)
        session.flush()
        if with_vehicle:
            VehicleDAO(session).add_vehicle(user.user_id, model="Clio", plate="AB-123-CD")
        return user.user_id


@pytest.fixture
def clock():
    """Clock frozen at Monday 2 March 2026, 09:00."""
    return FakeClock(datetime(2026, 3, 2, 9, 0))


@pytest.fixture
def config():
    return CarpoolConfig()


@pytest.fixture
def db_config():
    """In-memory SQLite database with all tables."""
    db_config = make_database("sqlite:///:memory:")
    yield db_config
    db_config.close()


@pytest.fixture
def guard(db_config, clock):
    return SeatInventoryGuard(db_config, clock=clock)


@pytest.fixture
def ride_manager(db_config, config, clock):
    return RideLifecycleManager(db_config, config=config, clock=clock)


@pytest.fixture
def booking_manager(db_config, guard, config, clock):
    return BookingLifecycleManager(db_config, guard=guard, config=config, clock=clock)


@pytest.fixture
def driver_id(db_config):
    return add_user(db_config, "driver@example.com", with_vehicle=True)


@pytest.fixture
def passenger_id(db_config):
    return add_user(db_config, "alice@example.com")


@pytest.fixture
def other_passenger_id(db_config):
    return add_user(db_config, "bob@example.com")


@pytest.fixture
def ride_data(clock):
    """Three-seat ride leaving tomorrow at 09:00."""
    return RideCreateModel(
        origin="Paris",
        destination="Lyon",
        departure_at=clock.now + timedelta(days=1),
        seat_capacity=3,
        price=Decimal("25.50"),
        description="Direct via A6",
    )


@pytest.fixture
def ride(ride_manager, driver_id, ride_data):
    return ride_manager.create(driver_id, ride_data)


@pytest.fixture
def valkey_client():
    return MockValkeyClient()


@pytest.fixture
def ride_cache(valkey_client):
    return RideCache(valkey_client, ride_ttl=300)


@pytest.fixture
def make_user(db_config):
    """Factory inserting users into the in-memory database."""
    def _make_user(email: str, with_vehicle: bool = False) -> int:
        return add_user(db_config, email, with_vehicle=with_vehicle)
    return _make_user


@pytest.fixture
def file_db(tmp_path):
    """File-backed SQLite database shared by several threads."""
    db_config = make_database(f"sqlite:///{tmp_path / 'carpool.db'}")
    yield db_config
    db_config.close()


@pytest.fixture
def file_db_ride(file_db):
    """Driver, three-seat ride leaving in one hour and its passengers on the file database."""
    driver = add_user(file_db, "driver@example.com", with_vehicle=True)
    manager = RideLifecycleManager(file_db)
    ride = manager.create(
        driver,
        RideCreateModel(
            origin="Nantes",
            destination="Rennes",
            departure_at=datetime.now() + timedelta(hours=1),
            seat_capacity=3,
            price=Decimal("9.00"),
        ),
    )
    passengers = [add_user(file_db, f"passenger{i}@example.com") for i in range(10)]
    return ride, passengers
