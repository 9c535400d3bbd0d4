"""
Tests for the Valkey ride cache and its use by the managers.

Uses an in-memory mock in place of a Valkey server.
"""

from unittest.mock import MagicMock

import pytest
from valkey.exceptions import ConnectionError as ValkeyServerConnectionError

from carpool.cache.client import ValkeyClient
from carpool.cache.config import ValkeyConfig, ValkeyConnectionError
from carpool.cache.utils import CacheKeyBuilder, CacheKeyPrefix
from carpool.services.booking_manager import BookingLifecycleManager
from carpool.services.ride_manager import RideLifecycleManager
from carpool.services.seat_inventory import SeatInventoryGuard


@pytest.fixture
def cached_managers(db_config, config, clock, ride_cache):
    rides = RideLifecycleManager(db_config, config=config, cache=ride_cache, clock=clock)
    guard = SeatInventoryGuard(db_config, cache=ride_cache, clock=clock)
    bookings = BookingLifecycleManager(db_config, guard=guard, config=config, cache=ride_cache, clock=clock)
    return rides, bookings


class TestCacheKeys:
    """Key naming."""

    def test_build_key(self):
        assert CacheKeyBuilder.build_key(CacheKeyPrefix.RIDE_SUMMARY, 42) == "carpool:ride:42"
        assert CacheKeyBuilder.build_key("custom", "a", None, b=2, c=None) == "custom:a:b=2"

    def test_hash_key_is_stable(self):
        first = CacheKeyBuilder.build_hash_key(CacheKeyPrefix.RIDE_SEARCH, {"origin": "paris", "passengers": 2})
        second = CacheKeyBuilder.build_hash_key(CacheKeyPrefix.RIDE_SEARCH, {"passengers": 2, "origin": "paris"})
        assert first == second
        assert first.startswith("carpool:search:hash:")


class TestRideCache:
    """Cache-aside reads and invalidation."""

    def test_summary_is_cached(self, cached_managers, ride, ride_cache, valkey_client):
        rides, _ = cached_managers

        rides.get_summary(ride.ride_id)
        assert ride_cache.ride_key(ride.ride_id) in valkey_client.data

        summary = rides.get_summary(ride.ride_id)
        assert summary.remaining_seats == 3
        assert ride_cache.get_stats()["hits"] == 1

    def test_derived_flags_follow_the_clock(self, cached_managers, ride, clock):
        rides, _ = cached_managers
        assert rides.get_summary(ride.ride_id).is_active

        clock.set(ride.departure_at)
        assert not rides.get_summary(ride.ride_id).is_active

    def test_booking_invalidates_summary(self, cached_managers, ride, passenger_id, ride_cache, valkey_client):
        rides, bookings = cached_managers
        rides.get_summary(ride.ride_id)

        bookings.book(passenger_id, ride.ride_id, 2)

        assert ride_cache.ride_key(ride.ride_id) not in valkey_client.data
        summary = rides.get_summary(ride.ride_id)
        assert summary.remaining_seats == 1
        assert summary.booked_seats_view == 2

    @pytest.mark.parametrize("transition", ["cancel", "start"])
    def test_status_change_invalidates_summary(self, cached_managers, ride, clock, transition):
        rides, _ = cached_managers
        rides.get_summary(ride.ride_id)
        clock.set(ride.departure_at)

        getattr(rides, transition)(ride.ride_id)

        assert rides.get_summary(ride.ride_id).status.value in ("cancelled", "completed")

    def test_search_results_are_invalidated(self, cached_managers, ride, passenger_id, ride_cache):
        rides, bookings = cached_managers
        assert [r.available_seats for r in rides.search(origin="paris")] == [3]
        assert [r.available_seats for r in rides.search(origin="paris")] == [3]
        assert ride_cache.get_stats()["hits"] == 1

        bookings.book(passenger_id, ride.ride_id, 1)

        assert [r.available_seats for r in rides.search(origin="paris")] == [2]

    def test_cache_failure_falls_back_to_database(self, cached_managers, ride, passenger_id, valkey_client, ride_cache):
        rides, bookings = cached_managers
        valkey_client.fail = True

        assert rides.get_summary(ride.ride_id).remaining_seats == 3
        assert bookings.book(passenger_id, ride.ride_id, 1).remaining_seats == 2
        assert len(rides.search(origin="paris")) == 1
        assert ride_cache.get_stats()["failures"] > 0

    def test_fill_across_invalidation_is_dropped(self, cached_managers, ride, passenger_id, ride_cache, valkey_client):
        """A reader that loaded the ride before a booking committed must not cache it."""
        rides, bookings = cached_managers
        generation = ride_cache.current_generation()
        stale = rides.get(ride.ride_id)

        bookings.book(passenger_id, ride.ride_id, 2)

        assert not ride_cache.set_ride(stale, 0, generation)
        assert ride_cache.ride_key(ride.ride_id) not in valkey_client.data
        assert rides.get_summary(ride.ride_id).remaining_seats == 1

    def test_fill_without_invalidation_is_kept(self, cached_managers, ride, ride_cache, valkey_client):
        rides, _ = cached_managers
        generation = ride_cache.current_generation()

        assert ride_cache.set_ride(rides.get(ride.ride_id), 0, generation)
        assert ride_cache.ride_key(ride.ride_id) in valkey_client.data

    def test_search_key_uses_numeric_generation(self, ride_cache, valkey_client):
        valkey_client.data[CacheKeyPrefix.SEARCH_GENERATION.value] = b"3"

        ride_cache.set_search({"origin": "paris"}, [])

        search_keys = [key for key in valkey_client.data if ":hash:" in key]
        assert len(search_keys) == 1
        assert search_keys[0].startswith(f"{CacheKeyPrefix.RIDE_SEARCH.value}:g3:hash:")
        assert ride_cache.get_search({"origin": "paris"}) == []


class TestValkeyClient:
    """Synchronous client wrapper."""

    def test_connect_with_injected_client(self):
        raw = MagicMock()
        raw.ping.return_value = True
        client = ValkeyClient(ValkeyConfig(), client=raw)

        client.connect()

        assert client.is_connected
        assert client.client is raw

    def test_client_requires_connection(self):
        client = ValkeyClient(ValkeyConfig(), client=MagicMock())
        with pytest.raises(ValkeyConnectionError):
            client.client

    def test_connect_gives_up_after_retries(self):
        raw = MagicMock()
        raw.ping.side_effect = ValkeyServerConnectionError("refused")
        client = ValkeyClient(ValkeyConfig(max_retries=2, retry_backoff=0.0), client=raw)

        with pytest.raises(ValkeyConnectionError):
            client.connect()

        assert raw.ping.call_count == 2
        assert not client.is_connected

    def test_config_from_env(self, monkeypatch):
        monkeypatch.setenv("VALKEY_HOST", "cache.internal")
        monkeypatch.setenv("VALKEY_PORT", "6380")
        monkeypatch.setenv("VALKEY_PASSWORD", "secret")

        config = ValkeyConfig.from_env()
        kwargs = config.to_connection_pool_kwargs()

        assert kwargs["host"] == "cache.internal"
        assert kwargs["port"] == 6380
        assert kwargs["password"] == "secret"
        assert kwargs["decode_responses"] is True
        assert "secret" not in str(config)

    def test_health_check_marks_client_disconnected(self):
        raw = MagicMock()
        raw.ping.return_value = True
        client = ValkeyClient(ValkeyConfig(), client=raw)
        client.connect()

        assert client.health_check(force=True)

        raw.ping.side_effect = ValkeyServerConnectionError("gone")
        assert not client.health_check(force=True)
        assert not client.is_connected
        assert client.get_connection_info()["is_connected"] is False

    def test_stats_report_cache_health(self, ride_cache, valkey_client):
        assert ride_cache.get_stats()["healthy"]

        valkey_client.fail = True
        assert not ride_cache.get_stats()["healthy"]
