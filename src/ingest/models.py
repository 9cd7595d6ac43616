"""Data models for the ingestion pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

FilterResult = Literal["passed", "filtered_genre", "filtered_author"]
Outcome = Literal["added", "skipped", "failed"]
RunStatus = Literal["running", "completed", "failed", "partial"]


@dataclass
class BookCandidate:
    """A book record fetched from the source, not yet cataloged."""

    identifier: str
    title: str
    author: str
    asset_url: str
    year: int | None = None
    description: str | None = None
    language: str | None = None


@dataclass
class ClassificationResult:
    """Validated genre labels for one candidate."""

    genres: list[str]
    subgenre: str | None = None

    @property
    def category(self) -> str:
        """Primary genre used as the denormalized catalog category."""
        return self.genres[0]


@dataclass
class FilterDecision:
    """Outcome of evaluating one candidate against the inclusion filters."""

    result: FilterResult
    genres: list[str]
    author: str
    reason: str | None = None

    @property
    def passed(self) -> bool:
        return self.result == "passed"


@dataclass
class FetchResult:
    """One page of candidates plus where the next run should continue."""

    candidates: list[BookCandidate]
    next_page: int
    next_cursor: str | None = None


@dataclass
class CatalogRecord:
    """A row of the books table."""

    id: int | None
    title: str
    author: str
    source: str
    source_identifier: str | None
    category: str
    year: int | None = None
    language: str | None = None
    asset_url: str | None = None
    asset_path: str | None = None
    description: str | None = None
    genres: list[str] | None = None
    subgenre: str | None = None


@dataclass
class IngestionState:
    """Resumption state for one source (one ingestion_state row)."""

    source: str
    last_page: int = 1
    last_cursor: str | None = None
    total_ingested: int = 0
    is_paused: bool = False
    paused_at: str | None = None
    paused_by: str | None = None
    last_run_at: str | None = None
    last_run_status: str = "idle"
    last_run_added: int = 0
    last_run_skipped: int = 0
    last_run_failed: int = 0
    updated_at: str | None = None


@dataclass
class CandidateOutcome:
    """What happened to one candidate, with the pipeline steps it went through."""

    identifier: str
    outcome: Outcome
    reason: str | None = None
    error: str | None = None
    steps: list[str] = field(default_factory=list)


@dataclass
class RunSummary:
    """Counters and continuation point for one orchestrator run."""

    started_at: str
    status: str = "running"
    job_id: int | None = None
    completed_at: str | None = None
    processed: int = 0
    added: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    next_page: int | None = None
    next_cursor: str | None = None
    dry_run: bool = False
    outcomes: list[CandidateOutcome] = field(default_factory=list)

    def record(self, outcome: CandidateOutcome) -> None:
        """Fold a candidate outcome into the counters."""
        self.outcomes.append(outcome)
        self.processed += 1
        if outcome.outcome == "added":
            self.added += 1
        elif outcome.outcome == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append(
                {"identifier": outcome.identifier, "error": outcome.error or "unknown error"}
            )

    def final_status(self) -> RunStatus:
        """Derive the terminal status from the counters."""
        if self.failed == 0:
            return "completed"
        if self.added == 0:
            return "failed"
        return "partial"

    def to_dict(self) -> dict[str, Any]:
        """Render the summary returned to the scheduler."""
        return {
            "jobId": self.job_id,
            "status": self.status,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "processed": self.processed,
            "added": self.added,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
            "nextPage": self.next_page,
            "nextCursor": self.next_cursor,
            "dryRun": self.dry_run,
        }


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (the format stored in the catalog)."""
    return datetime.now(timezone.utc).isoformat()
