"""Schema migrations for the catalog database.

Migrations are plain SQL files named ``NNN_description.sql`` in ``versions/``;
each holds a single statement valid on both SQLite and PostgreSQL.
"""

from .runner import MigrationRunner

__all__ = ["MigrationRunner"]
