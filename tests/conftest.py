"""Shared fixtures for catalog and ingestion tests."""

import pytest

from catalog.db import DatabaseConfig, create_database
from ingest.models import BookCandidate


@pytest.fixture
def catalog(tmp_path):
    """A connected SQLite catalog with schema and migrations applied."""
    adapter = create_database(DatabaseConfig(db_type="sqlite", db_path=tmp_path / "catalog.db"))
    adapter.connect()
    adapter.initialize()

    yield adapter

    adapter.close()


@pytest.fixture
def make_candidate():
    """Factory for BookCandidate instances with sensible defaults."""

    def _make(identifier: str = "meditations00marc", **overrides) -> BookCandidate:
        values = {
            "identifier": identifier,
            "title": f"Title of {identifier}",
            "author": "Marcus Aurelius",
            "asset_url": f"https://archive.org/download/{identifier}/{identifier}.pdf",
            "year": 1900,
            "description": "A public-domain text.",
            "language": "eng",
        }
        values.update(overrides)
        return BookCandidate(**values)

    return _make
