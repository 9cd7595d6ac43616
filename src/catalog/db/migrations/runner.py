"""Migration runner for database schema updates."""

from pathlib import Path
from typing import TYPE_CHECKING

from common.logger import get_logger

if TYPE_CHECKING:
    from catalog.db.interface import DatabaseAdapter

logger = get_logger(__name__)


class MigrationRunner:
    """Runs database migrations and tracks schema versions."""

    def __init__(self, adapter: "DatabaseAdapter", migrations_dir: Path | None = None):
        """Initialize migration runner.

        Args:
            adapter: Connected database adapter
            migrations_dir: Directory of ``NNN_name.sql`` files (default: ./versions)
        """
        self.adapter = adapter
        self.migrations_dir = migrations_dir or Path(__file__).parent / "versions"

    def ensure_migration_table(self) -> None:
        """Create schema_version table if it doesn't exist."""
        self.adapter.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        self.adapter.commit()

    def get_current_version(self) -> int:
        """Get current schema version.

        Returns:
            Current version number, or 0 if no migrations applied
        """
        self.ensure_migration_table()

        result = self.adapter.fetchone("SELECT MAX(version) AS version FROM schema_version")

        if result and result["version"] is not None:
            return int(result["version"])
        return 0

    def get_pending_migrations(self) -> list[tuple[int, str, Path]]:
        """Get list of pending migrations.

        Returns:
            List of tuples: (version, name, filepath), ordered by version
        """
        current_version = self.get_current_version()

        if not self.migrations_dir.exists():
            return []

        migrations = []
        for filepath in sorted(self.migrations_dir.glob("*.sql")):
            prefix, _, name = filepath.stem.partition("_")
            if not name or not prefix.isdigit():
                logger.warning(f"Skipping invalid migration filename: {filepath.name}")
                continue

            version = int(prefix)
            if version > current_version:
                migrations.append((version, name, filepath))

        return sorted(migrations, key=lambda m: m[0])

    def apply_migration(self, version: int, name: str, filepath: Path) -> None:
        """Apply a single migration and record it in schema_version.

        Raises:
            DatabaseError: If the migration statement fails (it is rolled back)
        """
        logger.info(f"Applying migration {version}: {name}")

        try:
            self.adapter.execute(filepath.read_text().strip().rstrip(";"))
            self.adapter.execute(
                "INSERT INTO schema_version (version, name) VALUES (?, ?)",
                (version, name),
            )
            self.adapter.commit()
            logger.info(f"[green]✓[/green] Applied migration {version}: {name}")

        except Exception as e:
            self.adapter.rollback()
            logger.error(f"[red]✗[/red] Failed to apply migration {version}: {e}")
            raise

    def run_migrations(self) -> int:
        """Run all pending migrations.

        Returns:
            Number of migrations applied
        """
        pending = self.get_pending_migrations()

        if not pending:
            logger.debug("No pending migrations")
            return 0

        logger.info(f"Found {len(pending)} pending migration(s)")

        for version, name, filepath in pending:
            self.apply_migration(version, name, filepath)

        return len(pending)
