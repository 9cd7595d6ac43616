"""Database factory for creating database adapters.

This module provides a factory function and configuration class for creating
database adapters based on the database type (SQLite or PostgreSQL).
"""

from dataclasses import dataclass
from pathlib import Path

from .interface import DatabaseAdapter
from .sqlite_adapter import SQLiteAdapter
from .types import DatabaseType


@dataclass
class DatabaseConfig:
    """Database configuration container.

    Attributes:
        db_type: Type of database ('sqlite' or 'postgresql')
        db_path: Path to SQLite database file (for SQLite only)
        host: PostgreSQL host (for PostgreSQL only)
        port: PostgreSQL port (for PostgreSQL only)
        database: PostgreSQL database name (for PostgreSQL only)
        user: PostgreSQL username (for PostgreSQL only)
        password: PostgreSQL password (for PostgreSQL only)
        timeout: Connection/statement timeout in seconds (both backends)
    """

    db_type: DatabaseType | str
    # SQLite-specific
    db_path: Path | None = None
    # PostgreSQL-specific
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = None
    pool_size: int = 1
    pool_max_overflow: int = 2
    timeout: float = 10.0

    def __post_init__(self):
        """Validate configuration after initialization.

        Raises:
            ValueError: If the type is unknown or required settings are missing
        """
        if isinstance(self.db_type, str):
            try:
                self.db_type = DatabaseType(self.db_type.lower())
            except ValueError as e:
                raise ValueError(
                    f"Unsupported database type: {self.db_type}. "
                    f"Must be one of: {', '.join(t.value for t in DatabaseType)}"
                ) from e

        if self.db_type == DatabaseType.SQLITE:
            if self.db_path is None:
                raise ValueError("db_path is required for SQLite")
            if isinstance(self.db_path, str):
                self.db_path = Path(self.db_path)

        elif self.db_type == DatabaseType.POSTGRESQL:
            if not all([self.host, self.database, self.user]):
                raise ValueError("host, database, and user are required for PostgreSQL")
            if self.port is None:
                self.port = 5432

        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


def create_database(config: DatabaseConfig) -> DatabaseAdapter:
    """Factory function to create appropriate database adapter.

    Args:
        config: Database configuration

    Returns:
        Database adapter instance (not yet connected)

    Raises:
        ValueError: If database type is unsupported
        ImportError: If PostgreSQL is requested without psycopg installed
    """
    if config.db_type == DatabaseType.SQLITE:
        return SQLiteAdapter(config.db_path, timeout=config.timeout)

    elif config.db_type == DatabaseType.POSTGRESQL:
        # Import here to avoid requiring psycopg when not using PostgreSQL
        from .postgres_adapter import PostgreSQLAdapter

        return PostgreSQLAdapter(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            password=config.password or "",
            pool_size=config.pool_size,
            pool_max_overflow=config.pool_max_overflow,
            timeout=config.timeout,
        )

    raise ValueError(f"Unsupported database type: {config.db_type}")


def get_adapter() -> DatabaseAdapter:
    """Get database adapter using environment configuration.

    Reads DATABASE_TYPE and the matching connection settings from the
    environment (see ``common.env``).

    Returns:
        Configured database adapter

    Raises:
        ValueError: If the environment describes an incomplete configuration
    """
    from common.env import env

    db_type = env.database_type()

    if db_type.lower() == "postgresql":
        config = DatabaseConfig(
            db_type="postgresql",
            host=env.postgres_host(),
            port=env.postgres_port(),
            database=env.postgres_database(),
            user=env.postgres_user(),
            password=env.postgres_password(),
            pool_size=env.postgres_pool_size(),
            pool_max_overflow=env.postgres_pool_max_overflow(),
            timeout=env.database_timeout(),
        )
    else:
        config = DatabaseConfig(
            db_type=db_type,
            db_path=env.database_path(),
            timeout=env.database_timeout(),
        )

    return create_database(config)
