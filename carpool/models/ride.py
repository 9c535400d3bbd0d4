"""
Ride-related Pydantic models for the carpool core.

Input models validate what drivers submit; output models are built from the
SQLAlchemy records with ``from_attributes``.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import RideStatus


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """
    Convert a timezone-aware datetime to naive local time.

    Rides are stored and compared in naive local time, the same clock as
    ``datetime.now()``. Naive values are returned unchanged.
    """
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class RideCreateModel(BaseModel):
    """
    Ride publication request.

    ``arrival_at`` may be omitted; the ride manager then applies the default
    trip duration.
    """
    origin: str = Field(..., min_length=3, max_length=255, description="Departure place")
    destination: str = Field(..., min_length=3, max_length=255, description="Arrival place")
    departure_at: datetime = Field(..., description="Scheduled departure date and time")
    arrival_at: Optional[datetime] = Field(None, description="Scheduled arrival date and time")
    seat_capacity: int = Field(..., ge=1, le=8, description="Seats offered to passengers")
    price: Decimal = Field(
        ..., ge=0, le=Decimal("9999.99"), max_digits=6, decimal_places=2, description="Price per seat"
    )
    description: Optional[str] = Field(None, max_length=1000, description="Free-text description")
    conditions: Optional[str] = Field(None, max_length=1000, description="Travel conditions")

    @field_validator("departure_at", "arrival_at")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)

    @model_validator(mode="after")
    def check_schedule(self) -> "RideCreateModel":
        if self.arrival_at is not None and self.arrival_at < self.departure_at:
            raise ValueError("Arrival cannot precede departure")
        return self


class RideUpdateModel(BaseModel):
    """
    Partial ride update.

    Seat fields are absent; the seat counter is only changed by
    the seat inventory guard, so unknown fields are rejected.
    """
    model_config = ConfigDict(extra="forbid")

    origin: Optional[str] = Field(None, min_length=3, max_length=255)
    destination: Optional[str] = Field(None, min_length=3, max_length=255)
    departure_at: Optional[datetime] = None
    arrival_at: Optional[datetime] = None
    price: Optional[Decimal] = Field(None, ge=0, le=Decimal("9999.99"), max_digits=6, decimal_places=2)
    description: Optional[str] = Field(None, max_length=1000)
    conditions: Optional[str] = Field(None, max_length=1000)

    @field_validator("departure_at", "arrival_at")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class RideSearchModel(BaseModel):
    """Search criteria for bookable rides."""
    origin: Optional[str] = Field(None, description="Partial, case-insensitive departure place")
    destination: Optional[str] = Field(None, description="Partial, case-insensitive arrival place")
    departure_date: Optional[date] = Field(None, description="Calendar day of departure")
    passengers: Optional[int] = Field(None, description="Minimum number of seats left")


class RideModel(BaseModel):
    """Ride record as stored."""
    model_config = ConfigDict(from_attributes=True)

    ride_id: int
    driver_id: int
    vehicle_id: Optional[int] = None
    origin: str
    destination: str
    departure_at: datetime
    arrival_at: datetime
    seat_capacity: int = Field(..., ge=1, le=8)
    available_seats: int = Field(..., ge=0, description="Remaining bookable seats")
    price: Decimal
    description: Optional[str] = None
    conditions: Optional[str] = None
    status: RideStatus
    created_at: datetime
    updated_at: datetime


class RideSummaryModel(RideModel):
    """
    Ride with derived status, evaluated at read time.

    ``remaining_seats`` mirrors the stored counter. ``booked_seats_view`` is
    the sum of seats held by confirmed and completed bookings, the same
    figure ``reconcile`` checks the counter against.
    """
    is_active: bool
    can_be_booked: bool
    remaining_seats: int
    booked_seats_view: int = 0


class SeatReconciliationModel(BaseModel):
    """Comparison of the stored seat counter with the confirmed-bookings view."""
    ride_id: int
    seat_capacity: int
    available_seats: int
    booked_seats: int = Field(..., description="Seats held by confirmed and completed bookings")
    expected_available_seats: int
    drift: int = Field(..., description="available_seats - expected_available_seats")
    checked_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0
