"""
Concurrent booking simulator.

Launches a burst of simulated passengers against one ride to show that the
seat inventory guard never oversells: every passenger thread waits on a
barrier, then all call ``book`` at once through their own sessions.
"""

import logging
import random
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..database.models import User
from ..errors import CarpoolError, InsufficientSeats
from ..models.simulation import ConcurrentBookingSimulationModel, PassengerAttemptModel
from .booking_manager import BookingLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class BookingScenario:
    """Configuration for a booking simulation scenario."""
    scenario_name: str
    concurrent_passengers: int
    seats_per_booking: int
    think_time_ms: Tuple[int, int]  # Min, max delay after the barrier releases


class BookingSimulator:
    """
    Multi-passenger booking simulator.

    Args:
        booking_manager: Manager whose ``book`` the passengers call
    """

    def __init__(self, booking_manager: BookingLifecycleManager):
        self.booking_manager = booking_manager
        self.db_config = booking_manager.db_config

        self.scenarios = {
            "sold_out_race": BookingScenario(
                scenario_name="Sold-out race - more passengers than seats",
                concurrent_passengers=20,
                seats_per_booking=1,
                think_time_ms=(0, 20),
            ),
            "group_bookings": BookingScenario(
                scenario_name="Group bookings - two seats each",
                concurrent_passengers=10,
                seats_per_booking=2,
                think_time_ms=(0, 50),
            ),
            "last_seat": BookingScenario(
                scenario_name="Last seat - everyone at once",
                concurrent_passengers=30,
                seats_per_booking=1,
                think_time_ms=(0, 0),
            ),
        }

        logger.info("BookingSimulator initialized with predefined scenarios")

    def run(
        self,
        ride_id: int,
        scenario_name: str = "sold_out_race",
        custom_scenario: Optional[BookingScenario] = None,
        passenger_ids: Optional[List[int]] = None,
    ) -> ConcurrentBookingSimulationModel:
        """
        Run a concurrent booking simulation against one ride.

        Args:
            ride_id: Ride the passengers race for
            scenario_name: Name of a predefined scenario
            custom_scenario: Scenario to use instead of a predefined one
            passenger_ids: Existing passengers to use; simulated users are
                created when omitted

        Returns:
            ConcurrentBookingSimulationModel: Outcome and timings

        Raises:
            ValueError: Unknown scenario or too few passengers
            RideNotFound: No such ride
        """
        scenario = custom_scenario or self.scenarios.get(scenario_name)
        if not scenario:
            raise ValueError(f"Unknown scenario: {scenario_name}")

        simulation_id = str(uuid.uuid4())

        if passenger_ids is None:
            passenger_ids = self.create_passengers(scenario.concurrent_passengers, tag=simulation_id[:8])
        if len(passenger_ids) < scenario.concurrent_passengers:
            raise ValueError(
                f"Scenario needs {scenario.concurrent_passengers} passengers, got {len(passenger_ids)}"
            )

        initial_seats = self.booking_manager.guard.reconcile(ride_id).available_seats

        logger.info(
            f"Starting simulation '{scenario.scenario_name}' on ride {ride_id} "
            f"with {scenario.concurrent_passengers} passengers and {initial_seats} seat(s) left"
        )

        barrier = threading.Barrier(scenario.concurrent_passengers)
        started_at = datetime.now()
        start_time = time.perf_counter()

        with ThreadPoolExecutor(max_workers=scenario.concurrent_passengers) as executor:
            futures = [
                executor.submit(self._attempt, barrier, ride_id, passenger_id, scenario)
                for passenger_id in passenger_ids[: scenario.concurrent_passengers]
            ]
            attempts = [future.result() for future in futures]

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        final_seats = self.booking_manager.guard.reconcile(ride_id).available_seats

        successes = [a for a in attempts if a.success]
        seats_booked = sum(a.seats_requested for a in successes)
        sold_out = sum(1 for a in attempts if a.error_code == InsufficientSeats.code)
        errors = sum(1 for a in attempts if a.error_code == "infrastructure_error")

        simulation = ConcurrentBookingSimulationModel(
            simulation_id=simulation_id,
            ride_id=ride_id,
            scenario_name=scenario.scenario_name,
            concurrent_passengers=scenario.concurrent_passengers,
            seats_per_booking=scenario.seats_per_booking,
            initial_available_seats=initial_seats,
            final_available_seats=final_seats,
            successful_bookings=len(successes),
            seats_booked=seats_booked,
            sold_out_rejections=sold_out,
            other_rejections=len(attempts) - len(successes) - sold_out - errors,
            errors=errors,
            oversold=seats_booked > initial_seats,
            average_response_time_ms=(
                sum(a.response_time_ms for a in attempts) / len(attempts) if attempts else 0.0
            ),
            simulation_duration_ms=duration_ms,
            started_at=started_at,
            completed_at=datetime.now(),
            attempts=attempts,
        )

        if simulation.oversold:
            logger.error(f"Simulation {simulation_id} oversold ride {ride_id}: {seats_booked} > {initial_seats}")
        logger.info(
            f"Simulation completed: {simulation.successful_bookings} booked, "
            f"{simulation.sold_out_rejections} sold out, {simulation.errors} errors, "
            f"{final_seats} seat(s) left"
        )
        return simulation

    def _attempt(
        self,
        barrier: threading.Barrier,
        ride_id: int,
        passenger_id: int,
        scenario: BookingScenario,
    ) -> PassengerAttemptModel:
        attempt = PassengerAttemptModel(passenger_id=passenger_id, seats_requested=scenario.seats_per_booking)

        barrier.wait()
        low, high = scenario.think_time_ms
        if high > 0:
            time.sleep(random.uniform(low, high) / 1000)

        start_time = time.perf_counter()
        attempt.attempt_start = datetime.now()
        try:
            result = self.booking_manager.book(passenger_id, ride_id, scenario.seats_per_booking)
            attempt.success = True
            attempt.booking_id = result.booking.booking_id
            attempt.remaining_seats = result.remaining_seats
        except CarpoolError as e:
            attempt.error_code = e.code
        except Exception as e:
            attempt.error_code = "infrastructure_error"
            logger.warning(f"Booking attempt of passenger {passenger_id} failed: {e!r}")
        finally:
            attempt.attempt_end = datetime.now()
            attempt.response_time_ms = (time.perf_counter() - start_time) * 1000

        return attempt

    def create_passengers(self, count: int, tag: str = "sim") -> List[int]:
        """Insert ``count`` simulated passenger users and return their ids."""
        with self.db_config.get_session_context() as session:
            users = [
                User(
                    email=f"passenger.{tag}.{i}@sim.carpool.local",
                    first_name="Sim",
                    last_name=f"Passenger {i}",
                )
                for i in range(count)
            ]
            session.add_all(users)
            session.flush()
            return [user.user_id for user in users]

    def get_available_scenarios(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "scenario_name": scenario.scenario_name,
                "concurrent_passengers": scenario.concurrent_passengers,
                "seats_per_booking": scenario.seats_per_booking,
                "think_time_range_ms": scenario.think_time_ms,
            }
            for name, scenario in self.scenarios.items()
        }
