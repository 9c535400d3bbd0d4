"""
Database configuration and connection management for the carpool core.

Supported backends:
- SQLite (default, file or in-memory)
- MySQL/MariaDB through pymysql
- PostgreSQL

The seat inventory relies on single-statement conditional updates, so every
backend only needs its native row (or database) write serialization; no
explicit locking is configured here.
"""

import os
import logging
from typing import Optional, Dict, Any
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool
from sqlalchemy.exc import SQLAlchemyError
from contextlib import contextmanager

from .models import create_all_tables, drop_all_tables

logger = logging.getLogger(__name__)


class DatabaseConfig:
    """
    Database configuration manager supporting multiple RDBMS backends.

    Owns the engine and the session factory for the lifetime of the process.
    Services receive an instance instead of reaching for a global.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        """
        Initialize database configuration.

        Args:
            database_url: Optional database URL override
            echo: Enable SQL query logging for debugging
        """
        self.database_url = database_url or self._build_database_url()
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._is_initialized = False

        self.db_type = self._detect_database_type()
        self.engine_kwargs = self._get_engine_kwargs()

        logger.info(f"Database configuration initialized for {self.db_type}")

    def _build_database_url(self) -> str:
        """
        Build database URL from environment variables.

        Environment variables:
        - DATABASE_URL: Complete database URL (takes precedence)
        - DB_TYPE: Database type (sqlite, mysql, mariadb, postgresql)
        - DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD: URL components

        Returns:
            Complete database URL string
        """
        database_url = os.getenv('DATABASE_URL')
        if database_url:
            return database_url

        db_type = os.getenv('DB_TYPE', 'sqlite').lower()

        if db_type == 'sqlite':
            return f"sqlite:///{os.getenv('DB_NAME', 'carpool.db')}"

        host = os.getenv('DB_HOST', 'localhost')
        database = os.getenv('DB_NAME', 'carpool')
        password = os.getenv('DB_PASSWORD', '')

        if db_type in ['mysql', 'mariadb']:
            port = os.getenv('DB_PORT', '3306')
            username = os.getenv('DB_USER', 'root')
            return f"mysql+pymysql://{username}:{password}@{host}:{port}/{database}?charset=utf8mb4"

        if db_type == 'postgresql':
            port = os.getenv('DB_PORT', '5432')
            username = os.getenv('DB_USER', 'postgres')
            return f"postgresql://{username}:{password}@{host}:{port}/{database}"

        raise ValueError(f"Unsupported database type: {db_type}")

    def _detect_database_type(self) -> str:
        """Detect database type from URL."""
        if self.database_url.startswith('sqlite'):
            return 'sqlite'
        elif self.database_url.startswith('mysql'):
            return 'mysql'
        elif self.database_url.startswith('postgresql'):
            return 'postgresql'
        else:
            return 'unknown'

    @property
    def is_memory_database(self) -> bool:
        """True for SQLite in-memory URLs, which must share a single connection."""
        return self.db_type == 'sqlite' and (
            self.database_url in ('sqlite://', 'sqlite:///:memory:') or 'mode=memory' in self.database_url
        )

    def _get_engine_kwargs(self) -> Dict[str, Any]:
        """
        Get database-specific engine configuration.

        Returns:
            Dictionary of engine configuration parameters
        """
        kwargs: Dict[str, Any] = {
            'echo': self.echo,
            'pool_pre_ping': True,
        }

        if self.db_type == 'sqlite':
            kwargs['connect_args'] = {
                'check_same_thread': False,
                'timeout': 30,  # Busy timeout: concurrent writers wait instead of failing
            }
            if self.is_memory_database:
                kwargs['poolclass'] = StaticPool

        elif self.db_type in ['mysql', 'postgresql']:
            kwargs.update({
                'poolclass': QueuePool,
                'pool_size': int(os.getenv('DB_POOL_SIZE', '10')),
                'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', '20')),
                'pool_timeout': int(os.getenv('DB_POOL_TIMEOUT', '30')),
                'pool_recycle': int(os.getenv('DB_POOL_RECYCLE', '3600')),
            })

            if self.db_type == 'mysql':
                kwargs['connect_args'] = {
                    'charset': 'utf8mb4',
                    'connect_timeout': 30,
                }

        return kwargs

    def initialize(self) -> None:
        """
        Initialize database engine and session factory.

        Raises:
            SQLAlchemyError: If database connection fails
        """
        if self._is_initialized:
            return

        try:
            self.engine = create_engine(self.database_url, **self.engine_kwargs)
            self._setup_event_listeners()

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            self.SessionLocal = sessionmaker(
                autoflush=False,
                bind=self.engine,
                expire_on_commit=False,  # Keep objects accessible after commit
            )

            self._is_initialized = True
            logger.info(f"Database engine initialized successfully ({self.db_type})")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise SQLAlchemyError(f"Database initialization failed: {e}") from e

    def _setup_event_listeners(self) -> None:
        """Set up SQLAlchemy event listeners for connection management."""

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enable foreign keys and WAL journaling on SQLite connections."""
            if self.db_type == 'sqlite':
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                if not self.is_memory_database:
                    cursor.execute("PRAGMA journal_mode=WAL")
                cursor.close()

    def create_tables(self) -> None:
        """
        Create all database tables if they don't exist.

        Raises:
            SQLAlchemyError: If table creation fails
        """
        if not self._is_initialized:
            self.initialize()

        try:
            create_all_tables(self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise SQLAlchemyError(f"Table creation failed: {e}") from e

    def drop_tables(self) -> None:
        """Drop all carpool tables."""
        if not self._is_initialized:
            self.initialize()
        drop_all_tables(self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            SQLAlchemy session instance
        """
        if not self._is_initialized:
            self.initialize()

        return self.SessionLocal()

    @contextmanager
    def get_session_context(self):
        """
        Get a database session that commits on success and rolls back on error.

        Usage:
            with db_config.get_session_context() as session:
                ...

        Yields:
            SQLAlchemy session
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug(f"Database session rolled back: {e!r}")
            raise
        finally:
            session.close()

    def test_connection(self) -> bool:
        """
        Test database connectivity.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            if not self._is_initialized:
                self.initialize()

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """
        Get database connection information for monitoring.

        Returns:
            Dictionary with connection details (credentials stripped)
        """
        info = {
            'database_type': self.db_type,
            'database_url': self.database_url.split('@')[-1] if '@' in self.database_url else self.database_url,
            'is_initialized': self._is_initialized,
            'echo_enabled': self.echo,
        }

        if self.engine and hasattr(self.engine.pool, 'size'):
            info.update({
                'pool_size': self.engine.pool.size(),
                'checked_in': self.engine.pool.checkedin(),
                'checked_out': self.engine.pool.checkedout(),
            })

        return info

    def close(self) -> None:
        """Close database connections and clean up resources."""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")


# Process-wide configuration instance
_db_config: Optional[DatabaseConfig] = None


def get_database_config(database_url: Optional[str] = None, echo: bool = False) -> DatabaseConfig:
    """
    Get or create the process-wide database configuration instance.

    Args:
        database_url: Optional database URL override
        echo: Enable SQL query logging

    Returns:
        DatabaseConfig instance
    """
    global _db_config

    if _db_config is None:
        _db_config = DatabaseConfig(database_url=database_url, echo=echo)

    return _db_config


def initialize_database(database_url: Optional[str] = None, echo: bool = False, create_tables: bool = True) -> DatabaseConfig:
    """
    Initialize the database and optionally create the tables.

    Args:
        database_url: Optional database URL override
        echo: Enable SQL query logging
        create_tables: Whether to create tables automatically

    Returns:
        Initialized DatabaseConfig instance
    """
    db_config = get_database_config(database_url=database_url, echo=echo)
    db_config.initialize()

    if create_tables:
        db_config.create_tables()

    return db_config


def close_database() -> None:
    """Dispose of the process-wide engine."""
    global _db_config

    if _db_config is not None:
        _db_config.close()
        _db_config = None


__all__ = [
    'DatabaseConfig',
    'get_database_config',
    'initialize_database',
    'close_database',
]
