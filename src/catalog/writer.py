"""Write accepted candidates into the books table."""

import json
from typing import Any

from catalog.db import DatabaseAdapter, DatabaseError, IntegrityError
from common.constants import UNCATEGORIZED
from common.logger import get_logger
from ingest.errors import DuplicateError, PersistenceError, ValidationError
from ingest.models import BookCandidate, CatalogRecord, ClassificationResult

logger = get_logger(__name__)


def category_for(genres: list[str] | None) -> str:
    """The denormalized category: first genre, or Uncategorized."""
    return genres[0] if genres else UNCATEGORIZED


class CatalogWriter:
    """Insert catalog records, one committed transaction per book.

    Deduplication relies on the partial unique index on
    ``books.source_identifier``; a violation surfaces as DuplicateError.
    """

    def __init__(self, adapter: DatabaseAdapter, source: str):
        """Initialize catalog writer.

        Args:
            adapter: Connected database adapter
            source: Value stored in books.source for every written row
        """
        self.adapter = adapter
        self.source = source

    def write(
        self,
        candidate: BookCandidate,
        classification: ClassificationResult | None,
        description: str | None,
        asset_path: str | None = None,
    ) -> CatalogRecord:
        """Insert one book.

        Args:
            candidate: Fetched candidate
            classification: Validated genres, or None when classification failed
            description: Generated description; falls back to the source's own
            asset_path: Local copy of the asset, if one was kept

        Returns:
            The record as written, including its new id

        Raises:
            ValidationError: If title, author or identifier is missing
            DuplicateError: If the identifier is already cataloged
            PersistenceError: For any other storage failure
        """
        if not candidate.identifier:
            raise ValidationError("Candidate has no source identifier")
        if not candidate.title or not candidate.title.strip():
            raise ValidationError(f"Candidate {candidate.identifier} has no title")
        if not candidate.author or not candidate.author.strip():
            raise ValidationError(f"Candidate {candidate.identifier} has no author")

        genres = classification.genres if classification else None
        record = CatalogRecord(
            id=None,
            title=candidate.title.strip(),
            author=candidate.author.strip(),
            source=self.source,
            source_identifier=candidate.identifier,
            category=category_for(genres),
            year=candidate.year,
            language=candidate.language,
            asset_url=candidate.asset_url,
            asset_path=asset_path,
            description=description or candidate.description,
            genres=genres,
            subgenre=classification.subgenre if classification else None,
        )

        try:
            record.id = self.adapter.insert(
                """
                INSERT INTO books
                (title, author, published_year, language, source, source_identifier,
                 asset_url, asset_path, description, genres, subgenre, category)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.title,
                    record.author,
                    record.year,
                    record.language,
                    record.source,
                    record.source_identifier,
                    record.asset_url,
                    record.asset_path,
                    record.description,
                    json.dumps(genres) if genres else None,
                    record.subgenre,
                    record.category,
                ),
            )
            self.adapter.commit()

        except IntegrityError as e:
            self.adapter.rollback()
            raise DuplicateError(candidate.identifier) from e
        except DatabaseError as e:
            self.adapter.rollback()
            raise PersistenceError(f"Failed to write {candidate.identifier}: {e}") from e

        return record

    def existing_identifiers(self, identifiers: list[str]) -> set[str]:
        """Return the subset of identifiers already in the catalog."""
        identifiers = [i for i in identifiers if i]
        if not identifiers:
            return set()

        placeholders = ", ".join("?" for _ in identifiers)
        rows = self.adapter.fetchall(
            f"SELECT source_identifier FROM books WHERE source_identifier IN ({placeholders})",
            tuple(identifiers),
        )
        return {row["source_identifier"] for row in rows}

    def count(self) -> int:
        return self.adapter.fetchscalar("SELECT COUNT(*) AS total FROM books") or 0

    def resync_categories(self) -> dict[str, Any]:
        """Recompute ``category`` from ``genres`` for every book.

        Rows whose category already matches are left alone. A row that fails
        to update is rolled back and counted; the pass continues.

        Returns:
            Dictionary with statistics:
                - examined: Rows looked at
                - updated: Rows whose category changed
                - errors: List of {id, error} for rows that failed
        """
        stats: dict[str, Any] = {"examined": 0, "updated": 0, "errors": []}

        rows = self.adapter.fetchall("SELECT id, genres, category FROM books ORDER BY id")
        logger.info(f"Resyncing categories for {len(rows)} book(s)")

        for row in rows:
            stats["examined"] += 1
            try:
                genres = json.loads(row["genres"]) if row["genres"] else None
                expected = category_for(genres if isinstance(genres, list) else None)
                if row["category"] == expected:
                    continue

                self.adapter.execute(
                    "UPDATE books SET category = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (expected, row["id"]),
                )
                self.adapter.commit()
                stats["updated"] += 1

            except (json.JSONDecodeError, DatabaseError) as e:
                self.adapter.rollback()
                logger.error(f"[red]✗[/red] Failed to resync category for book {row['id']}: {e}")
                stats["errors"].append({"id": row["id"], "error": str(e)})

        logger.info(
            f"[green]✓[/green] Category resync complete: "
            f"{stats['updated']} updated, {len(stats['errors'])} error(s)"
        )
        return stats
