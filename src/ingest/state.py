"""Resumption state per source (pause flag, page pointer, last run counters)."""

from dataclasses import fields
from typing import Any

from catalog.db import DatabaseAdapter
from common.constants import INTERNET_ARCHIVE_SOURCE
from common.logger import get_logger
from ingest.models import IngestionState, RunSummary, utc_now

logger = get_logger(__name__)

_STATE_COLUMNS = [f.name for f in fields(IngestionState)]


class StateStore:
    """Read and update the single ``ingestion_state`` row of each source.

    The row is created with defaults the first time a source is read. Every
    mutating method commits immediately.
    """

    def __init__(self, adapter: DatabaseAdapter, default_source: str | None = None):
        """Initialize state store.

        Args:
            adapter: Connected database adapter
            default_source: Source used when a method is called without one
                (default: the Internet Archive source key)
        """
        self.adapter = adapter
        self.default_source = default_source or INTERNET_ARCHIVE_SOURCE

    def _source(self, source: str | None) -> str:
        return source or self.default_source

    def _row_to_state(self, row: dict[str, Any]) -> IngestionState:
        values = {name: row.get(name) for name in _STATE_COLUMNS}
        values["is_paused"] = bool(values["is_paused"])
        for name in ("paused_at", "last_run_at", "updated_at"):
            if values[name] is not None and not isinstance(values[name], str):
                values[name] = values[name].isoformat()
        return IngestionState(**values)

    def get(self, source: str | None = None, create: bool = True) -> IngestionState:
        """Get the state for a source.

        Args:
            source: Source key (default: the store's default source)
            create: Insert the default row when the source has none yet; when
                False a missing row is returned as unsaved defaults
        """
        source = self._source(source)
        query = f"SELECT {', '.join(_STATE_COLUMNS)} FROM ingestion_state WHERE source = ?"

        row = self.adapter.fetchone(query, (source,))
        if row is None and not create:
            return IngestionState(source=source)
        if row is None:
            logger.info(f"Initializing ingestion state for '{source}'")
            self.adapter.execute(
                """
                INSERT INTO ingestion_state (source, updated_at) VALUES (?, ?)
                ON CONFLICT (source) DO NOTHING
                """,
                (source, utc_now()),
            )
            self.adapter.commit()
            row = self.adapter.fetchone(query, (source,))

        return self._row_to_state(row)

    def _update(self, source: str, assignments: dict[str, Any]) -> None:
        self.get(source)
        assignments = {**assignments, "updated_at": utc_now()}
        columns = ", ".join(f"{name} = ?" for name in assignments)
        self.adapter.execute(
            f"UPDATE ingestion_state SET {columns} WHERE source = ?",
            (*assignments.values(), source),
        )
        self.adapter.commit()

    def set_resumption_point(self, source: str | None, page: int, cursor: str | None = None) -> None:
        """Store where the next run should continue."""
        self._update(self._source(source), {"last_page": page, "last_cursor": cursor})

    def record_run_outcome(self, source: str | None, summary: RunSummary) -> IngestionState:
        """Persist a finished run: resumption point, counters and status.

        ``total_ingested`` grows by the run's ``added`` count. The pause flag
        is left untouched.
        """
        source = self._source(source)
        current = self.get(source)

        self._update(
            source,
            {
                "last_page": summary.next_page if summary.next_page is not None else current.last_page,
                "last_cursor": summary.next_cursor,
                "total_ingested": current.total_ingested + summary.added,
                "last_run_at": summary.completed_at or utc_now(),
                "last_run_status": summary.status,
                "last_run_added": summary.added,
                "last_run_skipped": summary.skipped,
                "last_run_failed": summary.failed,
            },
        )
        return self.get(source)

    def pause(self, source: str | None = None, actor: str | None = None) -> IngestionState:
        """Pause ingestion; takes effect before the next fetch."""
        source = self._source(source)
        self._update(source, {"is_paused": True, "paused_at": utc_now(), "paused_by": actor})
        logger.info(f"[yellow]⏸[/yellow] Paused ingestion for '{source}' (by {actor or 'unknown'})")
        return self.get(source)

    def resume(self, source: str | None = None) -> IngestionState:
        """Clear the pause flag along with who paused it and when."""
        source = self._source(source)
        self._update(source, {"is_paused": False, "paused_at": None, "paused_by": None})
        logger.info(f"[green]▶[/green] Resumed ingestion for '{source}'")
        return self.get(source)

    def reset(self, source: str | None = None) -> IngestionState:
        """Restart the source from page 1."""
        source = self._source(source)
        self._update(source, {"last_page": 1, "last_cursor": None, "last_run_status": "reset"})
        logger.info(f"Reset ingestion state for '{source}' to page 1")
        return self.get(source)

    def is_paused(self, source: str | None = None) -> bool:
        return self.get(source, create=False).is_paused

    def status(self, source: str | None = None) -> dict[str, Any]:
        """Render the operator-facing state query."""
        return to_status(self.get(source))


def to_status(state: IngestionState) -> dict[str, Any]:
    """Convert state to the ``{source, currentPage, ...}`` status document."""
    return {
        "source": state.source,
        "currentPage": state.last_page,
        "cumulativeAdded": state.total_ingested,
        "isPaused": state.is_paused,
        "pausedBy": state.paused_by,
        "lastRunAt": state.last_run_at,
        "lastRunStatus": state.last_run_status,
        "lastRunAdded": state.last_run_added,
        "lastRunSkipped": state.last_run_skipped,
        "lastRunFailed": state.last_run_failed,
    }
