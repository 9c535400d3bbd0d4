"""
Carpool: seat inventory and booking lifecycle core for a ride-sharing backend.

The package covers the part of a carpooling service where correctness matters:
1. Seat inventory with an atomic conditional decrement (no oversell)
2. Ride lifecycle (active -> completed / cancelled) with derived status
3. Booking lifecycle (pending -> confirmed / cancelled / completed)

HTTP routing, authentication and profile management live outside this package
and call into the services exposed here.
"""

__version__ = "0.1.0"
