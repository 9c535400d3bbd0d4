"""
Configuration and logging helpers for the carpool core.
"""

from .config import CarpoolConfig, load_config, get_config, reset_config, validate_required_settings
from .logging_setup import configure_logging

__all__ = [
    "CarpoolConfig",
    "load_config",
    "get_config",
    "reset_config",
    "validate_required_settings",
    "configure_logging",
]
