"""PostgreSQL database adapter implementation.

This adapter wraps psycopg3 for deployments where the catalog is shared with
the rest of the library platform.
"""

from pathlib import Path
from typing import Any

try:
    import psycopg
    from psycopg.rows import dict_row
    from psycopg_pool import ConnectionPool
except ImportError as e:
    raise ImportError(
        "PostgreSQL dependencies not installed. "
        "Install with: pip install -e \".[postgresql]\""
    ) from e

from .interface import DatabaseAdapter
from .types import ConnectionError as DBConnectionError
from .types import DatabaseError, Row, SchemaError
from .types import IntegrityError as DBIntegrityError


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL database adapter.

    Uses a small connection pool; an ingestion run holds one connection for
    its whole duration.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "shelfstock",
        user: str = "postgres",
        password: str = "",
        pool_size: int = 1,
        pool_max_overflow: int = 2,
        timeout: float = 10.0,
    ):
        """Initialize PostgreSQL adapter.

        Args:
            host: PostgreSQL server host
            port: PostgreSQL server port
            database: Database name
            user: Database user
            password: Database password
            pool_size: Minimum number of connections in pool
            pool_max_overflow: Maximum overflow connections beyond pool_size
            timeout: Connect timeout and per-statement timeout, in seconds
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.pool_max_overflow = pool_max_overflow
        self.timeout = timeout

        self._pool: ConnectionPool | None = None
        self._conn: Any = None  # psycopg.Connection
        self._schema_file = Path(__file__).parent / "schema_postgresql.sql"

    def connect(self) -> None:
        """Establish database connection and connection pool."""
        try:
            conninfo = (
                f"host={self.host} port={self.port} dbname={self.database} "
                f"user={self.user} password={self.password} "
                f"connect_timeout={max(1, int(self.timeout))}"
            )

            self._pool = ConnectionPool(
                conninfo,
                min_size=self.pool_size,
                max_size=self.pool_size + self.pool_max_overflow,
                kwargs={"options": f"-c statement_timeout={int(self.timeout * 1000)}"},
                timeout=self.timeout,
                open=True,
            )
            self._conn = self._pool.getconn()
            self._conn.row_factory = dict_row

        except psycopg.Error as e:
            raise DBConnectionError(f"Failed to connect to PostgreSQL database: {e}") from e

    def close(self) -> None:
        """Close database connection and connection pool."""
        if self._conn and self._pool:
            self._pool.putconn(self._conn)
            self._conn = None

        if self._pool:
            self._pool.close()
            self._pool = None

    def commit(self) -> None:
        """Commit current transaction."""
        if not self._conn:
            raise DatabaseError("No active connection")
        try:
            self._conn.commit()
        except psycopg.Error as e:
            raise DatabaseError(f"Failed to commit transaction: {e}") from e

    def rollback(self) -> None:
        """Rollback current transaction."""
        if not self._conn:
            raise DatabaseError("No active connection")
        try:
            self._conn.rollback()
        except psycopg.Error as e:
            raise DatabaseError(f"Failed to rollback transaction: {e}") from e

    def create_schema(self) -> None:
        """Create all database tables and indexes from SQL file."""
        if not self._conn:
            raise DatabaseError("No active connection")

        if not self._schema_file.exists():
            raise SchemaError(f"Schema file not found: {self._schema_file}")

        try:
            with self._conn.cursor() as cursor:
                cursor.execute(self._schema_file.read_text())
            self._conn.commit()
        except psycopg.Error as e:
            self._conn.rollback()
            raise SchemaError(f"Failed to create schema: {e}") from e
        except OSError as e:
            raise SchemaError(f"Failed to read schema file: {e}") from e

    def get_tables(self) -> list[str]:
        """Get list of all tables in database."""
        rows = self.fetchall(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public'
            AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """
        )
        return [row["table_name"] for row in rows]

    def get_table_schema(self, table_name: str) -> list[Row]:
        """Get column information for a table."""
        return self.fetchall(
            """
            SELECT
                ordinal_position - 1 AS cid,
                column_name AS name,
                data_type AS type,
                CASE WHEN is_nullable = 'NO' THEN 1 ELSE 0 END AS notnull,
                column_default AS "default"
            FROM information_schema.columns
            WHERE table_schema = 'public' AND table_name = ?
            ORDER BY ordinal_position
            """,
            (table_name,),
        )

    def execute(self, query: str, params: tuple | None = None) -> Any:
        """Execute a query and return cursor.

        Note: queries use SQLite-style ? placeholders and are converted to %s.
        """
        if not self._conn:
            raise DatabaseError("No active connection")

        try:
            pg_query = query.replace("?", "%s")

            cursor = self._conn.cursor()
            if params:
                cursor.execute(pg_query, params)
            else:
                cursor.execute(pg_query)
            return cursor
        except psycopg.errors.IntegrityError as e:
            raise DBIntegrityError(f"Integrity constraint violation: {e}") from e
        except psycopg.Error as e:
            raise DatabaseError(f"Query execution failed: {e}") from e

    def insert(self, query: str, params: tuple | None = None) -> Any:
        """Execute an INSERT with ``RETURNING id`` appended and return the id."""
        cursor = self.execute(f"{query.rstrip().rstrip(';')} RETURNING id", params)
        row = cursor.fetchone()
        return row["id"] if row else None

    @property
    def placeholder(self) -> str:
        """Get database-specific parameter placeholder.

        Returns:
            '%s' for PostgreSQL (but queries with ? are auto-converted)
        """
        return "%s"

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._conn else "disconnected"
        return (
            f"PostgreSQLAdapter(host={self.host}, port={self.port}, "
            f"database={self.database}, status={status})"
        )
