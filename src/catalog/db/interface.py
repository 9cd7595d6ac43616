"""Abstract database adapter interface.

This module defines the interface that all database adapters must implement,
giving the catalog writer, state store and audit log one API regardless of
whether the catalog lives in SQLite or PostgreSQL.
"""

from abc import ABC, abstractmethod
from typing import Any

from .types import Row


class DatabaseAdapter(ABC):
    """Abstract database adapter interface.

    Queries are written with SQLite-style ``?`` placeholders; adapters for
    other backends translate them.
    """

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit current transaction.

        Raises:
            DatabaseError: If commit fails
        """
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Rollback current transaction.

        Raises:
            DatabaseError: If rollback fails
        """
        pass

    @abstractmethod
    def create_schema(self) -> None:
        """Create all tables and indexes from the backend's schema file.

        The schema file is idempotent (``IF NOT EXISTS`` everywhere), so this
        is safe to call on an existing catalog.

        Raises:
            SchemaError: If schema creation fails
        """
        pass

    def run_migrations(self) -> int:
        """Run pending database migrations.

        Returns:
            Number of migrations applied

        Raises:
            DatabaseError: If migration fails
        """
        from .migrations import MigrationRunner

        runner = MigrationRunner(self)
        return runner.run_migrations()

    def initialize(self) -> int:
        """Create the base schema and apply pending migrations.

        Returns:
            Number of migrations applied
        """
        self.create_schema()
        return self.run_migrations()

    @abstractmethod
    def get_tables(self) -> list[str]:
        """Get list of all tables in database.

        Raises:
            DatabaseError: If query fails
        """
        pass

    @abstractmethod
    def get_table_schema(self, table_name: str) -> list[Row]:
        """Get column information for a table.

        Args:
            table_name: Name of the table

        Returns:
            List of column definitions with at least ``name`` and ``type`` keys

        Raises:
            DatabaseError: If query fails
        """
        pass

    @abstractmethod
    def execute(self, query: str, params: tuple | None = None) -> Any:
        """Execute a query and return cursor.

        Args:
            query: SQL query to execute
            params: Query parameters (optional)

        Returns:
            Database cursor

        Raises:
            DatabaseError: If execution fails
            IntegrityError: If integrity constraint violated
        """
        pass

    @abstractmethod
    def insert(self, query: str, params: tuple | None = None) -> Any:
        """Execute an INSERT into a table with an ``id`` column and return the new id.

        Args:
            query: INSERT statement without a RETURNING clause
            params: Query parameters (optional)

        Returns:
            Primary key of the inserted row

        Raises:
            DatabaseError: If execution fails
            IntegrityError: If integrity constraint violated
        """
        pass

    def fetchone(self, query: str, params: tuple | None = None) -> Row | None:
        """Execute query and fetch one result as dictionary.

        Returns:
            Single row as dictionary, or None if no results
        """
        cursor = self.execute(query, params)
        row = cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    def fetchall(self, query: str, params: tuple | None = None) -> list[Row]:
        """Execute query and fetch all results as list of dictionaries."""
        cursor = self.execute(query, params)
        return [dict(row) for row in cursor.fetchall()]

    def fetchscalar(self, query: str, params: tuple | None = None) -> Any:
        """Execute query and return first column of first row.

        Useful for queries that return a single value like COUNT(*).

        Returns:
            First column of first row, or None if no results
        """
        result = self.fetchone(query, params)
        if result is None:
            return None
        return next(iter(result.values()))

    @property
    @abstractmethod
    def placeholder(self) -> str:
        """Get database-specific parameter placeholder ('?' or '%s')."""
        pass

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        self.close()
        return False
