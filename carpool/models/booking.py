"""
Booking-related Pydantic models for the carpool core.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from .enums import BookingStatus


class BookingRequestModel(BaseModel):
    """Passenger booking request."""
    ride_id: int = Field(..., ge=1, description="Ride to book")
    seat_count: int = Field(default=1, ge=1, le=8, description="Number of seats")
    message: Optional[str] = Field(None, max_length=500, description="Message to the driver")


class BookingModel(BaseModel):
    """Booking record as stored."""
    model_config = ConfigDict(from_attributes=True)

    booking_id: int
    passenger_id: int
    ride_id: int
    seat_count: int = Field(..., ge=1, le=8)
    status: BookingStatus
    message: Optional[str] = None
    total_price: Decimal = Field(..., ge=0, description="Ride price times seats, fixed at booking time")
    created_at: datetime
    updated_at: datetime


class BookingResultModel(BaseModel):
    """Outcome of a successful booking."""
    booking: BookingModel
    remaining_seats: Optional[int] = Field(
        None, description="Seats left on the ride after this booking (None while pending)"
    )
