"""
Synchronous Valkey client with health checks and reconnection.

The carpool services are synchronous, so this wraps the blocking
``valkey.Valkey`` client behind a connection pool with retry on connect.
"""

import logging
import time
from typing import Optional, Any, Dict

import valkey
from valkey.connection import ConnectionPool
from valkey.exceptions import ConnectionError, TimeoutError

from .config import ValkeyConfig, ValkeyConnectionError

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Valkey client with pooled connections and ping-based health checks.

    A pre-built client object (anything exposing the valkey command methods)
    may be passed as ``client``; it is then used as-is and ``connect`` only
    pings it.
    """

    def __init__(self, config: Optional[ValkeyConfig] = None, client: Optional[Any] = None):
        """
        Args:
            config: ValkeyConfig instance, defaults to environment-based config
            client: Optional ready-made client to use instead of a pooled one
        """
        self.config = config or ValkeyConfig.from_env()
        self._client = client
        self._connection_pool: Optional[ConnectionPool] = None
        self._is_connected = False
        self._last_health_check = 0.0
        self._connection_attempts = 0

        logger.info(f"Initializing Valkey client: {self.config}")

    def connect(self) -> None:
        """
        Establish the connection, retrying with exponential backoff.

        Raises:
            ValkeyConnectionError: If the server is unreachable after max_retries attempts
        """
        if self._is_connected and self._client is not None:
            return

        self._connection_attempts = 0

        while True:
            self._connection_attempts += 1
            try:
                if self._connection_pool is None and self._client is None:
                    self._connection_pool = ConnectionPool(**self.config.to_connection_pool_kwargs())
                    self._client = valkey.Valkey(connection_pool=self._connection_pool)

                self._ping()
                self._is_connected = True
                logger.info("Connected to Valkey server")
                return

            except (ConnectionError, TimeoutError, OSError, ValkeyConnectionError) as e:
                logger.warning(f"Valkey connection attempt {self._connection_attempts} failed: {e}")

                if self._connection_attempts >= self.config.max_retries:
                    error_msg = (
                        f"Failed to connect to Valkey after {self._connection_attempts} attempts. "
                        f"Last error: {e}"
                    )
                    logger.error(error_msg)
                    raise ValkeyConnectionError(error_msg) from e

                delay = self.config.retry_backoff * (2 ** (self._connection_attempts - 1))
                time.sleep(delay)

    def disconnect(self) -> None:
        """Release pooled connections."""
        if self._connection_pool is not None:
            self._connection_pool.disconnect()
            logger.info("Disconnected from Valkey server")
            self._connection_pool = None
            self._client = None
        self._is_connected = False

    def _ping(self) -> None:
        if self._client is None:
            raise ValkeyConnectionError("Client not initialized")
        if not self._client.ping():
            raise ValkeyConnectionError("Ping returned False")

    def health_check(self, force: bool = False) -> bool:
        """
        Ping the server, at most once per health_check_interval unless forced.

        Returns:
            bool: True if connection is healthy, False otherwise
        """
        now = time.monotonic()
        if not force and (now - self._last_health_check) < self.config.health_check_interval:
            return self._is_connected

        self._last_health_check = now

        if self._client is None or not self._is_connected:
            return False

        try:
            self._ping()
            return True
        except (ConnectionError, TimeoutError, ValkeyConnectionError) as e:
            logger.warning(f"Valkey health check failed: {e}")
            self._is_connected = False
            return False

    @property
    def is_connected(self) -> bool:
        return self._is_connected and self._client is not None

    @property
    def client(self) -> Any:
        """
        The underlying valkey client.

        Raises:
            ValkeyConnectionError: If client is not connected
        """
        if self._client is None or not self._is_connected:
            raise ValkeyConnectionError("Client not connected. Call connect() first.")
        return self._client

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            "is_connected": self._is_connected,
            "config": str(self.config),
            "connection_attempts": self._connection_attempts,
            "last_health_check": self._last_health_check,
        }

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
