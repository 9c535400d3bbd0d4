"""
Valkey connection settings for the ride cache.
"""

import os
import logging
from typing import Optional, Dict, Any
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ValkeyConfig:
    """
    Connection settings for the Valkey server backing the ride cache.

    Built from the environment with ``from_env`` or from the already loaded
    carpool configuration with ``from_carpool_config``.
    """

    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0
    max_connections: int = 10
    socket_timeout: float = 2.0
    socket_connect_timeout: float = 2.0
    retry_on_timeout: bool = True
    health_check_interval: int = 30
    max_retries: int = 3
    retry_backoff: float = 0.2

    @classmethod
    def from_env(cls) -> "ValkeyConfig":
        """
        Create ValkeyConfig from VALKEY_* environment variables.

        Returns:
            ValkeyConfig: Configuration instance with values from environment
        """
        return cls(
            host=os.getenv("VALKEY_HOST", "localhost"),
            port=int(os.getenv("VALKEY_PORT", "6379")),
            password=os.getenv("VALKEY_PASSWORD") or None,
            database=int(os.getenv("VALKEY_DATABASE", "0")),
            max_connections=int(os.getenv("VALKEY_MAX_CONNECTIONS", "10")),
            socket_timeout=float(os.getenv("VALKEY_SOCKET_TIMEOUT", "2.0")),
            socket_connect_timeout=float(os.getenv("VALKEY_SOCKET_CONNECT_TIMEOUT", "2.0")),
            retry_on_timeout=os.getenv("VALKEY_RETRY_ON_TIMEOUT", "true").lower() == "true",
            health_check_interval=int(os.getenv("VALKEY_HEALTH_CHECK_INTERVAL", "30")),
            max_retries=int(os.getenv("VALKEY_MAX_RETRIES", "3")),
            retry_backoff=float(os.getenv("VALKEY_RETRY_BACKOFF", "0.2")),
        )

    @classmethod
    def from_carpool_config(cls, config) -> "ValkeyConfig":
        """Take host, port, password and database from a CarpoolConfig."""
        return cls(
            host=config.valkey_host,
            port=config.valkey_port,
            password=config.valkey_password,
            database=config.valkey_database,
        )

    def to_connection_pool_kwargs(self) -> Dict[str, Any]:
        """
        Convert configuration to valkey.ConnectionPool parameters.

        Responses are decoded to str because cached payloads are JSON.
        """
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "db": self.database,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_connect_timeout,
            "retry_on_timeout": self.retry_on_timeout,
            "health_check_interval": self.health_check_interval,
            "decode_responses": True,
            "max_connections": self.max_connections,
        }

        if self.password:
            kwargs["password"] = self.password

        return kwargs

    def __str__(self) -> str:
        password_display = "***" if self.password else "None"
        return (
            f"ValkeyConfig(host={self.host}, port={self.port}, "
            f"db={self.database}, password={password_display})"
        )


class ValkeyConnectionError(Exception):
    """Raised when the ride cache cannot reach Valkey."""
    pass


class ValkeyConfigurationError(Exception):
    """Raised for unusable cache settings."""
    pass
