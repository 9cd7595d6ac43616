"""High-level orchestration for ingestion runs."""

from catalog.db import DatabaseAdapter, DatabaseError, get_adapter
from catalog.writer import CatalogWriter
from common.constants import DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE
from common.env import env
from common.logger import get_logger

from .assets import AssetDownloader
from .audit import AuditLog
from .classifier import GenreClassifier
from .clients.archive import InternetArchiveFetcher
from .clients.base import SourceFetcher
from .clients.rate_limiter import RateLimiter
from .descriptions import DescriptionGenerator
from .errors import ConfigurationError, DuplicateError, IngestionError
from .filters import FilterConfig, evaluate
from .models import BookCandidate, CandidateOutcome, RunSummary, utc_now
from .state import StateStore

logger = get_logger(__name__)


class IngestionOrchestrator:
    """Run the fetch → classify → filter → download → describe → write pipeline.

    One run reads the resumption point for its source, fetches whole pages
    until ``max_candidates`` candidates have been handled (or the source runs
    dry), and processes candidates strictly one at a time. A failure while
    handling one candidate is counted and logged; it never stops the run.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter | None = None,
        fetcher: SourceFetcher | None = None,
        classifier: GenreClassifier | None = None,
        describer: DescriptionGenerator | None = None,
        downloader: AssetDownloader | None = None,
        download_assets: bool | None = None,
    ):
        """Initialize orchestrator.

        Args:
            adapter: Connected database adapter (if None, creates and connects
                one from env)
            fetcher: Source fetcher (default: Internet Archive)
            classifier: Genre classifier (default: configured from env)
            describer: Description generator (default: configured from env)
            downloader: Asset downloader (default: configured from env)
            download_assets: Download accepted assets (default: DOWNLOAD_ASSETS)
        """
        self._owns_adapter = adapter is None
        if adapter is None:
            try:
                adapter = get_adapter()
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            adapter.connect()
        self.adapter = adapter

        self.fetcher = fetcher or InternetArchiveFetcher()
        self.source = self.fetcher.source_name
        self.classifier = classifier or GenreClassifier()
        self.describer = describer or DescriptionGenerator()
        self.download_assets = env.download_assets() if download_assets is None else download_assets
        self.downloader = downloader or AssetDownloader(self.source)

        self.state = StateStore(self.adapter, default_source=self.source)
        self.audit = AuditLog(self.adapter)
        self.writer = CatalogWriter(self.adapter, self.source)
        self.limiter = RateLimiter(*self.fetcher.get_rate_limit())

    def run(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_candidates: int | None = None,
        dry_run: bool = False,
        job_type: str = "scheduled",
    ) -> RunSummary:
        """Execute one ingestion run.

        Args:
            batch_size: Candidates per fetched page (1-100)
            max_candidates: Stop fetching once this many candidates have been
                handled (default: one page)
            dry_run: Fetch, classify and filter only; nothing is downloaded,
                written or recorded
            job_type: 'scheduled' or 'manual', stored in the run log

        Returns:
            Run summary; ``status`` is 'idle' when the source is paused

        Raises:
            ConfigurationError: If the arguments or stored filter settings are
                invalid (raised before anything is fetched)

        Example:
            >>> with IngestionOrchestrator() as orchestrator:
            ...     summary = orchestrator.run(batch_size=30)
            >>> print(f"Added {summary.added}/{summary.processed}")
        """
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        if max_candidates is not None and max_candidates < 1:
            raise ConfigurationError("max_candidates must be positive")

        filter_config = FilterConfig.load(self.adapter)
        state = self.state.get(self.source, create=not dry_run)

        summary = RunSummary(
            started_at=utc_now(),
            dry_run=dry_run,
            next_page=state.last_page,
            next_cursor=state.last_cursor,
        )

        if state.is_paused:
            logger.info(
                f"[yellow]⏸[/yellow] Ingestion for '{self.source}' is paused "
                f"(by {state.paused_by or 'unknown'}), skipping run"
            )
            summary.status = "idle"
            summary.completed_at = utc_now()
            return summary

        if not dry_run:
            summary.job_id = self.audit.start_run(self.source, job_type, summary.started_at)

        limit = max_candidates or batch_size
        mode = " (dry run)" if dry_run else ""
        logger.info(
            f"Starting {job_type} ingestion for '{self.source}' at page {state.last_page}{mode}"
        )
        if filter_config.has_active_filters:
            logger.info(
                f"Filters active: genres={filter_config.allowed_genres or 'any'}, "
                f"authors={filter_config.allowed_authors or 'any'}"
            )

        fetch_failed = False
        seen: set[str] = set()
        pages = 0

        while summary.processed < limit:
            if pages > 0 and self.state.is_paused(self.source):
                logger.info("[yellow]⏸[/yellow] Pause requested, stopping before next fetch")
                break

            self.limiter.wait_if_needed()
            try:
                result = self.fetcher.fetch(summary.next_page, batch_size, summary.next_cursor)
            except IngestionError as e:
                logger.error(f"[red]✗[/red] Fetch failed for page {summary.next_page}: {e}")
                summary.errors.append({"identifier": "job", "error": str(e)})
                fetch_failed = True
                break
            except Exception as e:
                logger.error(
                    f"[red]✗[/red] Unexpected error fetching page {summary.next_page}: {e}"
                )
                summary.errors.append({"identifier": "job", "error": f"Unexpected error: {e}"})
                fetch_failed = True
                break
            pages += 1

            if result.candidates:
                seen |= self.writer.existing_identifiers([c.identifier for c in result.candidates])

            total = len(result.candidates)
            for i, candidate in enumerate(result.candidates, 1):
                logger.info(f"[{i}/{total}] '{candidate.title}' by {candidate.author}")
                outcome = self.process_candidate(
                    candidate, seen, filter_config, summary.job_id, dry_run
                )
                summary.record(outcome)

            summary.next_page = result.next_page
            summary.next_cursor = result.next_cursor

            if not result.candidates:
                logger.info(f"Source returned no candidates for page {summary.next_page}")
                break

        return self._finalize(summary, fetch_failed)

    def process_candidate(
        self,
        candidate: BookCandidate,
        seen: set[str],
        filter_config: FilterConfig,
        job_id: int | None,
        dry_run: bool = False,
    ) -> CandidateOutcome:
        """Take one candidate through the pipeline.

        ``seen`` holds identifiers already cataloged (or handled earlier in
        this run); accepted identifiers are added to it.

        Returns:
            The candidate's outcome with the steps it went through
        """
        outcome = CandidateOutcome(identifier=candidate.identifier, outcome="failed")
        steps = outcome.steps

        try:
            if candidate.identifier in seen:
                logger.info(f"  [dim]↷ Already cataloged: {candidate.identifier}[/dim]")
                outcome.outcome, outcome.reason = "skipped", "duplicate"
                return outcome

            steps.append("classify")
            classification = self.classifier.classify_candidate(candidate)

            if filter_config.has_active_filters:
                steps.append("filter")
                decision = evaluate(candidate, classification, filter_config)
                if not dry_run:
                    self.audit.record_filter_decision(job_id, candidate, decision)
                if not decision.passed:
                    logger.info(f"  [dim]↷ Filtered: {decision.reason}[/dim]")
                    outcome.outcome, outcome.reason = "skipped", decision.result
                    return outcome

            if dry_run:
                seen.add(candidate.identifier)
                outcome.outcome, outcome.reason = "added", "dry run"
                return outcome

            asset_path = None
            if self.download_assets:
                steps.append("download")
                asset_path = self.downloader.download(candidate)

            steps.append("describe")
            description = self.describer.generate_for(candidate)

            steps.append("write")
            record = self.writer.write(candidate, classification, description, asset_path)
            seen.add(candidate.identifier)

            logger.info(f"  [green]✓[/green] Added as #{record.id} ({record.category})")
            outcome.outcome = "added"

        except DuplicateError:
            seen.add(candidate.identifier)
            logger.info(f"  [dim]↷ Already cataloged: {candidate.identifier}[/dim]")
            outcome.outcome, outcome.reason = "skipped", "duplicate"

        except (IngestionError, DatabaseError) as e:
            logger.error(f"  [red]✗[/red] {candidate.identifier}: {e}")
            outcome.error = str(e)
            self._rollback()

        except Exception as e:
            logger.error(f"  [red]✗[/red] Unexpected error for {candidate.identifier}: {e}")
            outcome.error = f"Unexpected error: {e}"
            self._rollback()

        return outcome

    def _finalize(self, summary: RunSummary, fetch_failed: bool) -> RunSummary:
        """Compute the final status and persist run log and resumption point."""
        if fetch_failed:
            summary.status = "failed" if summary.added == 0 else "partial"
        else:
            summary.status = summary.final_status()
        summary.completed_at = utc_now()

        if not summary.dry_run:
            self.audit.finish_run(summary.job_id, summary)
            self.state.record_run_outcome(self.source, summary)

        color = {"completed": "green", "partial": "yellow"}.get(summary.status, "red")
        logger.info(
            f"\n[{color}]Ingestion {summary.status}[/{color}]"
            f"{' (dry run)' if summary.dry_run else ''}\n"
            f"  Processed: {summary.processed}\n"
            f"  Added: {summary.added}\n"
            f"  Skipped: {summary.skipped}\n"
            f"  Failed: {summary.failed}\n"
            f"  Next page: {summary.next_page}"
        )
        return summary

    def _rollback(self) -> None:
        """Leave the connection usable for the next candidate."""
        try:
            self.adapter.rollback()
        except DatabaseError as e:
            logger.debug(f"Rollback after candidate failure failed: {e}")

    def close(self) -> None:
        """Close the adapter if this orchestrator created it."""
        if self._owns_adapter:
            self.adapter.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
