"""
Simulation models for concurrent booking runs.

Used by the booking simulator to report how a burst of passengers racing
for the same ride was resolved.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PassengerAttemptModel(BaseModel):
    """
    One simulated passenger's booking attempt.
    """
    model_config = ConfigDict(from_attributes=True)

    passenger_id: int = Field(..., description="Simulated passenger")
    seats_requested: int = Field(..., ge=1, le=8)
    attempt_start: datetime = Field(default_factory=datetime.now)
    attempt_end: Optional[datetime] = None
    success: bool = False
    booking_id: Optional[int] = None
    remaining_seats: Optional[int] = Field(None, description="Counter value returned on success")
    error_code: Optional[str] = Field(None, description="Error code if the attempt was rejected")
    response_time_ms: float = Field(default=0.0, ge=0.0)


class ConcurrentBookingSimulationModel(BaseModel):
    """
    Results from a concurrent booking simulation.

    ``oversold`` is True only if more seats were handed out than the ride had
    when the run started, which the seat inventory guard must prevent.
    """
    model_config = ConfigDict(from_attributes=True)

    simulation_id: str
    ride_id: int
    scenario_name: str
    concurrent_passengers: int = Field(..., ge=1)
    seats_per_booking: int = Field(..., ge=1, le=8)
    initial_available_seats: int = Field(..., ge=0)
    final_available_seats: int = Field(..., ge=0)
    successful_bookings: int = Field(default=0, ge=0)
    seats_booked: int = Field(default=0, ge=0)
    sold_out_rejections: int = Field(default=0, ge=0, description="Attempts rejected with insufficient seats")
    other_rejections: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0, description="Attempts that failed on infrastructure errors")
    oversold: bool = False
    average_response_time_ms: float = Field(default=0.0, ge=0.0)
    simulation_duration_ms: int = Field(default=0, ge=0)
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    attempts: List[PassengerAttemptModel] = Field(default_factory=list)
