"""
Environment configuration loader with validation for the carpool core.
"""

import os
import logging
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes", "on")


class CarpoolConfig(BaseModel):
    """Configuration model for the carpool core with validation."""

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///carpool.db", description="Database connection URL"
    )

    # Valkey Cache Configuration
    cache_enabled: bool = Field(
        default=False, description="Serve ride lookups through the Valkey cache"
    )
    valkey_host: str = Field(default="localhost", description="Valkey server host")
    valkey_port: int = Field(
        default=6379, ge=1, le=65535, description="Valkey server port"
    )
    valkey_password: Optional[str] = Field(
        default=None, description="Valkey server password"
    )
    valkey_database: int = Field(
        default=0, ge=0, le=15, description="Valkey database number"
    )
    ride_cache_ttl: int = Field(
        default=300, ge=1, description="TTL of cached ride summaries in seconds"
    )

    # Runtime
    carpool_debug: bool = Field(default=False, description="Enable debug mode")
    carpool_log_level: str = Field(default="INFO", description="Logging level")

    # Ride and booking rules
    ride_start_early_minutes: int = Field(
        default=30, ge=0, description="Minutes before departure a ride may be started"
    )
    ride_start_late_minutes: int = Field(
        default=120, ge=0, description="Minutes after departure a ride may still be started"
    )
    default_trip_hours: int = Field(
        default=2, ge=0, description="Arrival offset applied when no arrival time is given"
    )
    booking_restock_on_cancel: bool = Field(
        default=False,
        description="Return seats to the ride when a confirmed booking is cancelled",
    )

    @field_validator("carpool_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUTHY


def load_config(env_file: Optional[str] = None) -> CarpoolConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        CarpoolConfig: Validated configuration object

    Raises:
        ValueError: If configuration values are invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    config_data: Dict[str, Any] = {
        "database_url": os.getenv("DATABASE_URL", "sqlite:///carpool.db"),
        "cache_enabled": _env_bool("CACHE_ENABLED", "false"),
        "valkey_host": os.getenv("VALKEY_HOST", "localhost"),
        "valkey_port": int(os.getenv("VALKEY_PORT", "6379")),
        "valkey_password": os.getenv("VALKEY_PASSWORD") or None,
        "valkey_database": int(os.getenv("VALKEY_DATABASE", "0")),
        "ride_cache_ttl": int(os.getenv("RIDE_CACHE_TTL", "300")),
        "carpool_debug": _env_bool("CARPOOL_DEBUG", "false"),
        "carpool_log_level": os.getenv("CARPOOL_LOG_LEVEL", "INFO"),
        "ride_start_early_minutes": int(os.getenv("RIDE_START_EARLY_MINUTES", "30")),
        "ride_start_late_minutes": int(os.getenv("RIDE_START_LATE_MINUTES", "120")),
        "default_trip_hours": int(os.getenv("DEFAULT_TRIP_HOURS", "2")),
        "booking_restock_on_cancel": _env_bool("BOOKING_RESTOCK_ON_CANCEL", "false"),
    }

    try:
        return CarpoolConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def validate_required_settings(config: CarpoolConfig) -> None:
    """
    Validate that all required settings are properly configured.

    Args:
        config: Configuration object to validate

    Raises:
        ValueError: If required settings are missing or invalid
    """
    if not config.database_url:
        raise ValueError("DATABASE_URL is required")

    if config.cache_enabled and not config.valkey_host:
        raise ValueError("VALKEY_HOST is required when CACHE_ENABLED is set")

    logger.info(
        f"Configuration validated (cache: {'on' if config.cache_enabled else 'off'}, "
        f"restock on cancel: {config.booking_restock_on_cancel})"
    )


# Global configuration instance
_config: Optional[CarpoolConfig] = None


def get_config() -> CarpoolConfig:
    """
    Get the global configuration instance, loading it if necessary.

    Returns:
        CarpoolConfig: The global configuration object
    """
    global _config
    if _config is None:
        _config = load_config()
        validate_required_settings(_config)
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
