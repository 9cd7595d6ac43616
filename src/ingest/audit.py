"""Run history and filter decision audit trail."""

import json
from collections import Counter
from typing import Any

from catalog.db import DatabaseAdapter
from common.logger import get_logger
from ingest.models import BookCandidate, FilterDecision, RunSummary

logger = get_logger(__name__)

TOP_FILTERED_LIMIT = 5


class AuditLog:
    """Record ingestion runs and filter decisions.

    Run rows (``ingestion_logs``) are created when a run starts and finalized
    when it ends; filter rows (``ingestion_filter_stats``) are append-only.
    """

    def __init__(self, adapter: DatabaseAdapter):
        """Initialize audit log.

        Args:
            adapter: Connected database adapter
        """
        self.adapter = adapter

    def start_run(self, source: str, job_type: str, started_at: str) -> int:
        """Create a ``running`` run row.

        Returns:
            Id of the new run row (used as job id in the run summary)
        """
        job_id = self.adapter.insert(
            """
            INSERT INTO ingestion_logs (source, job_type, started_at, status)
            VALUES (?, ?, ?, 'running')
            """,
            (source, job_type, started_at),
        )
        self.adapter.commit()
        return job_id

    def finish_run(self, job_id: int, summary: RunSummary) -> None:
        """Write the final status, counters and error details of a run."""
        self.adapter.execute(
            """
            UPDATE ingestion_logs
            SET completed_at = ?, status = ?, books_processed = ?, books_added = ?,
                books_skipped = ?, books_failed = ?, error_details = ?
            WHERE id = ?
            """,
            (
                summary.completed_at,
                summary.status,
                summary.processed,
                summary.added,
                summary.skipped,
                summary.failed,
                json.dumps(summary.errors) if summary.errors else None,
                job_id,
            ),
        )
        self.adapter.commit()

    def record_filter_decision(
        self, job_id: int | None, candidate: BookCandidate, decision: FilterDecision
    ) -> None:
        """Append one filter decision.

        Example:
            >>> audit.record_filter_decision(7, candidate, decision)
        """
        self.adapter.execute(
            """
            INSERT INTO ingestion_filter_stats
            (job_id, book_identifier, book_title, book_author, book_genres,
             filter_result, filter_reason)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                job_id,
                candidate.identifier,
                candidate.title,
                candidate.author,
                json.dumps(decision.genres),
                decision.result,
                decision.reason,
            ),
        )
        self.adapter.commit()

    def recent_runs(self, limit: int = 10, source: str | None = None) -> list[dict[str, Any]]:
        """Get the most recent runs, newest first, with error_details decoded."""
        if source:
            rows = self.adapter.fetchall(
                """
                SELECT * FROM ingestion_logs
                WHERE source = ?
                ORDER BY started_at DESC, id DESC
                LIMIT ?
                """,
                (source, limit),
            )
        else:
            rows = self.adapter.fetchall(
                """
                SELECT * FROM ingestion_logs
                ORDER BY started_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            )

        for row in rows:
            row["error_details"] = self._deserialize(row.get("error_details")) or []
        return rows

    def filter_stats(self, limit: int = 10) -> dict[str, Any]:
        """Aggregate filter decisions over the most recent runs.

        Args:
            limit: Number of most recent runs to analyze

        Returns:
            Dictionary with totalEvaluated, passed, filtered, filteredByGenre,
            filteredByAuthor, jobsAnalyzed, and the five most often filtered
            genres and authors

        Example:
            >>> stats = audit.filter_stats(limit=5)
            >>> print(f"Filtered {stats['filtered']}/{stats['totalEvaluated']}")
        """
        jobs = self.adapter.fetchall(
            "SELECT id FROM ingestion_logs ORDER BY started_at DESC, id DESC LIMIT ?",
            (limit,),
        )

        stats: dict[str, Any] = {
            "totalEvaluated": 0,
            "passed": 0,
            "filtered": 0,
            "filteredByGenre": 0,
            "filteredByAuthor": 0,
            "jobsAnalyzed": len(jobs),
            "topFilteredGenres": [],
            "topFilteredAuthors": [],
        }
        if not jobs:
            return stats

        job_ids = tuple(job["id"] for job in jobs)
        placeholders = ", ".join("?" for _ in job_ids)
        rows = self.adapter.fetchall(
            f"""
            SELECT filter_result, book_genres, book_author
            FROM ingestion_filter_stats
            WHERE job_id IN ({placeholders})
            ORDER BY id
            """,
            job_ids,
        )

        genre_counts: Counter[str] = Counter()
        author_counts: Counter[str] = Counter()

        for row in rows:
            stats["totalEvaluated"] += 1
            result = row["filter_result"]
            if result == "passed":
                stats["passed"] += 1
            elif result == "filtered_genre":
                stats["filteredByGenre"] += 1
                genre_counts.update(self._deserialize(row["book_genres"]) or [])
            elif result == "filtered_author":
                stats["filteredByAuthor"] += 1
                if row["book_author"]:
                    author_counts[row["book_author"]] += 1

        stats["filtered"] = stats["filteredByGenre"] + stats["filteredByAuthor"]
        stats["topFilteredGenres"] = [
            {"genre": genre, "count": count}
            for genre, count in genre_counts.most_common(TOP_FILTERED_LIMIT)
        ]
        stats["topFilteredAuthors"] = [
            {"author": author, "count": count}
            for author, count in author_counts.most_common(TOP_FILTERED_LIMIT)
        ]
        return stats

    @staticmethod
    def _deserialize(value: Any) -> Any:
        """Decode a JSON text column; non-JSON text is returned as-is."""
        if value is None or not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
