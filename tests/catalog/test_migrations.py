"""Tests for database migration system."""

import pytest

from catalog.db import DatabaseConfig, DatabaseError, create_database
from catalog.db.migrations import MigrationRunner


@pytest.fixture
def temp_db(tmp_path):
    """Create a connected temporary SQLite database."""
    adapter = create_database(DatabaseConfig(db_type="sqlite", db_path=tmp_path / "test.db"))
    adapter.connect()

    yield adapter

    adapter.close()


@pytest.fixture
def migrations_dir(tmp_path):
    """An empty directory for test migration files."""
    path = tmp_path / "versions"
    path.mkdir()
    return path


class TestMigrationRunner:
    """Test migration runner functionality."""

    def test_ensure_migration_table(self, temp_db, migrations_dir):
        """Test that migration table is created."""
        runner = MigrationRunner(temp_db, migrations_dir)

        runner.ensure_migration_table()

        columns = {col["name"] for col in temp_db.get_table_schema("schema_version")}
        assert columns == {"version", "name", "applied_at"}

    def test_get_current_version_empty(self, temp_db, migrations_dir):
        """Test getting version from empty database."""
        assert MigrationRunner(temp_db, migrations_dir).get_current_version() == 0

    def test_run_migrations_with_pending(self, temp_db, migrations_dir):
        """Test running migrations applies each once, in order."""
        (migrations_dir / "002_create_table2.sql").write_text(
            "CREATE TABLE IF NOT EXISTS table2 (id INTEGER PRIMARY KEY);"
        )
        (migrations_dir / "001_create_table1.sql").write_text(
            "CREATE TABLE IF NOT EXISTS table1 (id INTEGER PRIMARY KEY);"
        )
        runner = MigrationRunner(temp_db, migrations_dir)

        assert [m[0] for m in runner.get_pending_migrations()] == [1, 2]
        assert runner.run_migrations() == 2

        tables = temp_db.get_tables()
        assert "table1" in tables
        assert "table2" in tables
        assert runner.get_current_version() == 2
        assert runner.run_migrations() == 0

    def test_migration_rollback_on_error(self, temp_db, migrations_dir):
        """Test that failed migrations are rolled back and not recorded."""
        bad_migration = migrations_dir / "001_bad_migration.sql"
        bad_migration.write_text("INVALID SQL SYNTAX;")
        runner = MigrationRunner(temp_db, migrations_dir)
        runner.ensure_migration_table()

        with pytest.raises(DatabaseError):
            runner.apply_migration(1, "bad_migration", bad_migration)

        assert temp_db.fetchone("SELECT * FROM schema_version WHERE version = ?", (1,)) is None

    def test_skip_invalid_filenames(self, temp_db, migrations_dir):
        """Test that invalid migration filenames are skipped."""
        (migrations_dir / "no_version.sql").write_text("SELECT 1;")
        (migrations_dir / "abc_not_a_number.sql").write_text("SELECT 2;")
        (migrations_dir / "003_valid_migration.sql").write_text("SELECT 3;")

        pending = MigrationRunner(temp_db, migrations_dir).get_pending_migrations()

        assert [(m[0], m[1]) for m in pending] == [(3, "valid_migration")]

    def test_missing_directory_has_no_pending(self, temp_db, tmp_path):
        """Test a missing migrations directory is treated as empty."""
        runner = MigrationRunner(temp_db, tmp_path / "does-not-exist")
        assert runner.run_migrations() == 0


class TestBundledMigrations:
    """Test the migrations shipped with the catalog."""

    def test_ingestion_config_table(self, temp_db):
        """Test migration 001 adds ingestion_config after the base schema."""
        temp_db.create_schema()
        temp_db.run_migrations()

        columns = {col["name"] for col in temp_db.get_table_schema("ingestion_config")}
        assert columns == {"config_key", "config_value", "updated_at"}

    def test_category_index(self, temp_db):
        """Test migration 002 indexes books.category."""
        temp_db.initialize()

        indexes = temp_db.fetchall(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'books'"
        )
        assert "idx_books_category" in {row["name"] for row in indexes}
