"""
Carpool Pydantic models package.

Validation and serialization models for rides, bookings and booking
simulations.
"""

# Enums
from .enums import (
    RideStatus,
    BookingStatus,
    VehicleEnergy,
    BOOKABLE_RIDE_STATUSES,
    CANCELLABLE_BOOKING_STATUSES,
)

# Ride models
from .ride import (
    RideCreateModel,
    RideUpdateModel,
    RideSearchModel,
    RideModel,
    RideSummaryModel,
    SeatReconciliationModel,
)

# Booking models
from .booking import (
    BookingRequestModel,
    BookingModel,
    BookingResultModel,
)

# Simulation models
from .simulation import (
    PassengerAttemptModel,
    ConcurrentBookingSimulationModel,
)

__all__ = [
    # Enums
    "RideStatus",
    "BookingStatus",
    "VehicleEnergy",
    "BOOKABLE_RIDE_STATUSES",
    "CANCELLABLE_BOOKING_STATUSES",

    # Ride models
    "RideCreateModel",
    "RideUpdateModel",
    "RideSearchModel",
    "RideModel",
    "RideSummaryModel",
    "SeatReconciliationModel",

    # Booking models
    "BookingRequestModel",
    "BookingModel",
    "BookingResultModel",

    # Simulation models
    "PassengerAttemptModel",
    "ConcurrentBookingSimulationModel",
]
