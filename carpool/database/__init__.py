"""
Database package for the carpool core.

This package provides the SQLAlchemy models and the database configuration
the seat inventory and lifecycle services run against.
"""

from .models import (
    Base,
    User,
    Vehicle,
    Ride,
    Booking,
    create_all_tables,
    drop_all_tables,
)

from .config import (
    DatabaseConfig,
    get_database_config,
    initialize_database,
    close_database,
)

__all__ = [
    # Models
    'Base',
    'User',
    'Vehicle',
    'Ride',
    'Booking',
    'create_all_tables',
    'drop_all_tables',

    # Configuration
    'DatabaseConfig',
    'get_database_config',
    'initialize_database',
    'close_database',
]
