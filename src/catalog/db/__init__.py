"""Database abstraction layer for the shelfstock catalog.

This package provides a consistent interface for the catalog, ingestion state
and audit tables across SQLite and PostgreSQL backends.

Example:
    >>> from catalog.db import DatabaseConfig, create_database
    >>>
    >>> config = DatabaseConfig(db_type="sqlite", db_path="data/catalog.db")
    >>> adapter = create_database(config)
    >>>
    >>> adapter.connect()
    >>> adapter.initialize()
    >>> adapter.fetchone("SELECT * FROM ingestion_state WHERE source = ?", ("internet_archive",))
    >>> adapter.close()
"""

from .factory import DatabaseConfig, create_database, get_adapter
from .interface import DatabaseAdapter
from .types import (
    ConnectionError,
    DatabaseError,
    DatabaseType,
    IntegrityError,
    Row,
    SchemaError,
)

__all__ = [
    # Factory
    "DatabaseConfig",
    "create_database",
    "get_adapter",
    # Interface
    "DatabaseAdapter",
    # Types and exceptions
    "DatabaseType",
    "DatabaseError",
    "ConnectionError",
    "IntegrityError",
    "SchemaError",
    "Row",
]
