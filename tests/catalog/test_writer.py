"""Tests for the catalog writer."""

import json
from unittest.mock import Mock

import pytest

from catalog.db import DatabaseError
from catalog.writer import CatalogWriter, category_for
from ingest.errors import DuplicateError, PersistenceError, ValidationError
from ingest.models import ClassificationResult


@pytest.fixture
def writer(catalog):
    return CatalogWriter(catalog, "internet_archive")


class TestWrite:
    """Tests for CatalogWriter.write."""

    def test_write_classified_book(self, writer, catalog, make_candidate):
        """Test a classified book stores genres, subgenre and category."""
        candidate = make_candidate("republic01")
        classification = ClassificationResult(["Philosophy", "Politics"], "Ancient")

        record = writer.write(candidate, classification, "A generated description.", "/a/b.pdf")

        row = catalog.fetchone("SELECT * FROM books WHERE id = ?", (record.id,))
        assert row["source"] == "internet_archive"
        assert row["source_identifier"] == "republic01"
        assert json.loads(row["genres"]) == ["Philosophy", "Politics"]
        assert row["subgenre"] == "Ancient"
        assert row["category"] == "Philosophy"
        assert row["description"] == "A generated description."
        assert row["asset_path"] == "/a/b.pdf"
        assert row["published_year"] == 1900

    def test_write_without_classification(self, writer, catalog, make_candidate):
        """Test an unclassified book is Uncategorized with no genres."""
        record = writer.write(make_candidate("plain01"), None, None)

        row = catalog.fetchone("SELECT genres, subgenre, category, description FROM books")
        assert record.category == "Uncategorized"
        assert row["genres"] is None
        assert row["subgenre"] is None
        assert row["category"] == "Uncategorized"
        assert row["description"] == "A public-domain text."

    def test_duplicate_identifier(self, writer, make_candidate):
        """Test writing the same identifier twice raises DuplicateError."""
        writer.write(make_candidate("dup01"), None, None)

        with pytest.raises(DuplicateError) as exc_info:
            writer.write(make_candidate("dup01", title="Another title"), None, None)

        assert exc_info.value.identifier == "dup01"
        assert writer.count() == 1

    def test_later_writes_unaffected_by_duplicate(self, writer, make_candidate):
        """Test the connection stays usable after a rejected write."""
        writer.write(make_candidate("a"), None, None)
        with pytest.raises(DuplicateError):
            writer.write(make_candidate("a"), None, None)

        writer.write(make_candidate("b"), None, None)
        assert writer.count() == 2

    @pytest.mark.parametrize(
        "overrides",
        [{"identifier": ""}, {"title": "  "}, {"author": ""}],
    )
    def test_missing_required_fields(self, writer, make_candidate, overrides):
        """Test missing identifier, title or author raises ValidationError."""
        with pytest.raises(ValidationError):
            writer.write(make_candidate(**overrides), None, None)

    def test_storage_failure_is_persistence_error(self, make_candidate):
        """Test non-integrity database errors become PersistenceError."""
        adapter = Mock()
        adapter.insert.side_effect = DatabaseError("disk I/O error")

        with pytest.raises(PersistenceError, match="disk I/O error"):
            CatalogWriter(adapter, "internet_archive").write(make_candidate(), None, None)
        adapter.rollback.assert_called_once()


class TestExistingIdentifiers:
    """Tests for the batch duplicate pre-check."""

    def test_returns_cataloged_subset(self, writer, make_candidate):
        """Test only identifiers already written are returned."""
        writer.write(make_candidate("x1"), None, None)
        writer.write(make_candidate("x2"), None, None)

        assert writer.existing_identifiers(["x1", "x3", "x2"]) == {"x1", "x2"}

    def test_empty_input(self, writer):
        """Test an empty batch makes no query."""
        assert writer.existing_identifiers([]) == set()


class TestResyncCategories:
    """Tests for the bulk category repair."""

    def test_category_for(self):
        """Test the category rule."""
        assert category_for(["History", "Law"]) == "History"
        assert category_for([]) == "Uncategorized"
        assert category_for(None) == "Uncategorized"

    def test_resync_fixes_drifted_rows(self, writer, catalog, make_candidate):
        """Test stale categories are recomputed and correct ones left alone."""
        ok = writer.write(make_candidate("ok"), ClassificationResult(["Law"]), None)
        stale = writer.write(make_candidate("stale"), ClassificationResult(["Poetry"]), None)
        catalog.execute("UPDATE books SET category = 'Misc' WHERE id = ?", (stale.id,))
        catalog.commit()

        stats = writer.resync_categories()

        assert stats == {"examined": 2, "updated": 1, "errors": []}
        categories = {
            row["id"]: row["category"] for row in catalog.fetchall("SELECT id, category FROM books")
        }
        assert categories == {ok.id: "Law", stale.id: "Poetry"}

    def test_resync_continues_past_bad_rows(self, writer, catalog, make_candidate):
        """Test malformed genres are reported without stopping the pass."""
        bad = writer.write(make_candidate("bad"), None, None)
        good = writer.write(make_candidate("good"), None, None)
        catalog.execute("UPDATE books SET genres = 'not json' WHERE id = ?", (bad.id,))
        catalog.execute(
            "UPDATE books SET genres = ? WHERE id = ?", (json.dumps(["Drama"]), good.id)
        )
        catalog.commit()

        stats = writer.resync_categories()

        assert stats["updated"] == 1
        assert [e["id"] for e in stats["errors"]] == [bad.id]
        assert catalog.fetchscalar("SELECT category FROM books WHERE id = ?", (good.id,)) == "Drama"
