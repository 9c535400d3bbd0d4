"""
SQLAlchemy database models for the carpool core.

This module defines the relational records the seat inventory and booking
lifecycle operate on:
- User: drivers and passengers (profile data lives outside the core)
- Vehicle: vehicles registered by a driver; at least one is needed to publish a ride
- Ride: a scheduled trip with seat capacity, remaining seat counter and price
- Booking: a passenger's reservation of seats on a ride
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

# Create the declarative base for all models
Base = declarative_base()


class User(Base):
    """
    User model for drivers and passengers.

    Only the identity is relevant to the core; rides and bookings reference it.
    """
    __tablename__ = 'user'

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(180), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    vehicles = relationship("Vehicle", back_populates="owner", lazy="select")
    rides_as_driver = relationship("Ride", back_populates="driver", lazy="select")
    bookings = relationship("Booking", back_populates="passenger", lazy="select")

    def __repr__(self):
        return f"<User(id={self.user_id}, email='{self.email}')>"


class Vehicle(Base):
    """
    Vehicle registered by a driver.

    The most recently registered vehicle is attached to each new ride.
    """
    __tablename__ = 'vehicle'

    vehicle_id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey('user.user_id'), nullable=False, index=True)
    model = Column(String(100), nullable=True)
    plate = Column(String(20), nullable=True)
    energy = Column(String(20), nullable=False, default='thermal')  # electric, hybrid, thermal
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    owner = relationship("User", back_populates="vehicles", lazy="select")

    def __repr__(self):
        return f"<Vehicle(id={self.vehicle_id}, owner={self.owner_id}, plate='{self.plate}')>"


class Ride(Base):
    """
    Ride model representing a scheduled carpool trip.

    ``seat_capacity`` is the number of seats offered at creation.
    ``available_seats`` is the remaining bookable counter; it is only ever
    changed through the seat inventory guard's conditional updates.
    """
    __tablename__ = 'ride'
    __table_args__ = (
        CheckConstraint('available_seats >= 0', name='ck_ride_available_seats_non_negative'),
        CheckConstraint('available_seats <= seat_capacity', name='ck_ride_available_within_capacity'),
        CheckConstraint('seat_capacity BETWEEN 1 AND 8', name='ck_ride_seat_capacity_range'),
    )

    ride_id = Column(Integer, primary_key=True, autoincrement=True)

    driver_id = Column(Integer, ForeignKey('user.user_id'), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicle.vehicle_id'), nullable=True)

    # Route and schedule
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_at = Column(DateTime, nullable=False, index=True)
    arrival_at = Column(DateTime, nullable=False)

    # Seats and pricing
    seat_capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    price = Column(Numeric(6, 2), nullable=False)  # Price per seat

    description = Column(Text, nullable=True)
    conditions = Column(Text, nullable=True)

    status = Column(String(50), nullable=False, default='active')  # active, completed, cancelled
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    driver = relationship("User", back_populates="rides_as_driver", lazy="select")
    vehicle = relationship("Vehicle", lazy="select")
    bookings = relationship("Booking", back_populates="ride", lazy="select")

    def __repr__(self):
        return (
            f"<Ride(id={self.ride_id}, {self.origin!r} -> {self.destination!r}, "
            f"seats={self.available_seats}/{self.seat_capacity}, status='{self.status}')>"
        )


class Booking(Base):
    """
    Booking model linking a passenger to seats on a ride.

    ``total_price`` is fixed when the booking is created and is never
    recalculated from later ride price changes.
    """
    __tablename__ = 'booking'
    __table_args__ = (
        CheckConstraint('seat_count BETWEEN 1 AND 8', name='ck_booking_seat_count_range'),
    )

    booking_id = Column(Integer, primary_key=True, autoincrement=True)

    passenger_id = Column(Integer, ForeignKey('user.user_id'), nullable=False, index=True)
    ride_id = Column(Integer, ForeignKey('ride.ride_id'), nullable=False, index=True)

    seat_count = Column(Integer, nullable=False, default=1)
    status = Column(String(50), nullable=False, default='pending')  # pending, confirmed, cancelled, completed
    message = Column(Text, nullable=True)
    total_price = Column(Numeric(8, 2), nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    ride = relationship("Ride", back_populates="bookings", lazy="select")
    passenger = relationship("User", back_populates="bookings", lazy="select")

    def __repr__(self):
        return (
            f"<Booking(id={self.booking_id}, ride_id={self.ride_id}, "
            f"passenger_id={self.passenger_id}, seats={self.seat_count}, status='{self.status}')>"
        )


# Composite indexes for the lookups the services run
Index('idx_ride_status_departure', Ride.status, Ride.departure_at)
Index('idx_ride_driver_departure', Ride.driver_id, Ride.departure_at)
Index('idx_booking_ride_status', Booking.ride_id, Booking.status)
Index('idx_vehicle_owner_latest', Vehicle.owner_id, Vehicle.vehicle_id)


def create_all_tables(engine):
    """
    Create all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.create_all(bind=engine)


def drop_all_tables(engine):
    """
    Drop all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.drop_all(bind=engine)


__all__ = [
    'Base',
    'User',
    'Vehicle',
    'Ride',
    'Booking',
    'create_all_tables',
    'drop_all_tables',
]
