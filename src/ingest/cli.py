"""CLI for scheduled ingestion runs and operator controls."""

import argparse
import json
import sys
from contextlib import contextmanager

from catalog.db import DatabaseAdapter, get_adapter
from catalog.writer import CatalogWriter
from common.constants import MAX_BATCH_SIZE
from common.env import env
from common.logger import console, error, get_logger, setup_logging, success, warning

from .audit import AuditLog
from .clients.archive import InternetArchiveFetcher
from .errors import ConfigurationError
from .filters import FilterConfig, save_filter_config
from .orchestrator import IngestionOrchestrator
from .state import StateStore

logger = get_logger(__name__)


@contextmanager
def open_catalog():
    """Connect to the configured catalog and make sure the schema is current."""
    try:
        adapter = get_adapter()
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    with adapter:
        applied = adapter.initialize()
        if applied:
            logger.info(f"Applied {applied} migration(s)")
        yield adapter


def _print_json(data) -> None:
    console.print_json(json.dumps(data, default=str))


def _split(value: str | None) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def cmd_init(args):
    """Create the catalog schema and apply migrations."""
    with open_catalog() as adapter:
        tables = adapter.get_tables()
    success(f"Catalog ready ({len(tables)} tables)")


def cmd_run(args):
    """Run one ingestion batch."""
    if not 1 <= args.batch_size <= MAX_BATCH_SIZE:
        raise ConfigurationError(f"--batch-size must be between 1 and {MAX_BATCH_SIZE}")

    with open_catalog() as adapter:
        orchestrator = IngestionOrchestrator(adapter)
        summary = orchestrator.run(
            batch_size=args.batch_size,
            max_candidates=args.max,
            dry_run=args.dry_run,
            job_type="manual" if args.manual else "scheduled",
        )

    if args.json:
        _print_json(summary.to_dict())
    else:
        for entry in summary.errors:
            logger.info(f"  [red]✗[/red] {entry['identifier']}: {entry['error']}")

    if summary.status == "failed":
        sys.exit(1)


def cmd_status(args):
    """Show resumption state for the configured source."""
    with open_catalog() as adapter:
        status = StateStore(adapter).status(args.source)
        total_books = CatalogWriter(adapter, status["source"]).count()

    if args.json:
        _print_json({**status, "catalogSize": total_books})
        return

    logger.info("\nIngestion Status")
    logger.info("=" * 50)
    logger.info(f"  Source:          {status['source']}")
    logger.info(f"  Current page:    {status['currentPage']}")
    logger.info(f"  Total ingested:  {status['cumulativeAdded']}")
    logger.info(f"  Catalog size:    {total_books}")
    paused = f"yes (by {status['pausedBy'] or 'unknown'})" if status["isPaused"] else "no"
    logger.info(f"  Paused:          {paused}")
    logger.info(f"  Last run:        {status['lastRunAt'] or 'never'} ({status['lastRunStatus']})")
    logger.info(
        f"  Last run counts: added {status['lastRunAdded']}, "
        f"skipped {status['lastRunSkipped']}, failed {status['lastRunFailed']}"
    )


def cmd_pause(args):
    """Pause ingestion before the next fetch."""
    with open_catalog() as adapter:
        StateStore(adapter).pause(args.source, actor=args.by)
    success("Ingestion paused")


def cmd_resume(args):
    """Clear the pause flag."""
    with open_catalog() as adapter:
        StateStore(adapter).resume(args.source)
    success("Ingestion resumed")


def cmd_reset(args):
    """Restart the source from page 1."""
    with open_catalog() as adapter:
        StateStore(adapter).reset(args.source)
    warning("Ingestion reset to page 1; the next run re-reads from the start")


def cmd_runs(args):
    """List recent runs."""
    with open_catalog() as adapter:
        runs = AuditLog(adapter).recent_runs(limit=args.limit, source=args.source)

    if args.json:
        _print_json(runs)
        return

    if not runs:
        logger.info("No ingestion runs recorded")
        return

    for run in runs:
        logger.info(
            f"#{run['id']:<5} {run['started_at']}  {run['job_type']:<9} {run['status']:<9} "
            f"processed {run['books_processed']}, added {run['books_added']}, "
            f"skipped {run['books_skipped']}, failed {run['books_failed']}"
        )


def cmd_filter_stats(args):
    """Aggregate filter decisions over recent runs."""
    with open_catalog() as adapter:
        stats = AuditLog(adapter).filter_stats(limit=args.limit)

    if args.json:
        _print_json(stats)
        return

    logger.info(f"\nFilter statistics (last {stats['jobsAnalyzed']} run(s))")
    logger.info("=" * 50)
    logger.info(f"  Evaluated:          {stats['totalEvaluated']}")
    logger.info(f"  Passed:             {stats['passed']}")
    logger.info(f"  Filtered (genre):   {stats['filteredByGenre']}")
    logger.info(f"  Filtered (author):  {stats['filteredByAuthor']}")

    if stats["topFilteredGenres"]:
        logger.info("\n  Most filtered genres:")
        for item in stats["topFilteredGenres"]:
            logger.info(f"    {item['genre']:25s} {item['count']:5d}")

    if stats["topFilteredAuthors"]:
        logger.info("\n  Most filtered authors:")
        for item in stats["topFilteredAuthors"]:
            logger.info(f"    {item['author'][:25]:25s} {item['count']:5d}")


def cmd_filters(args):
    """Show or update the inclusion filter settings."""
    with open_catalog() as adapter:
        config = FilterConfig.load(adapter)

        if args.filters_command == "set":
            config = _apply_filter_args(adapter, config, args)

    _print_json({**config.to_dict(), "hasActiveFilters": config.has_active_filters})


def _apply_filter_args(adapter: DatabaseAdapter, config: FilterConfig, args) -> FilterConfig:
    data = config.to_dict()
    if args.genres is not None:
        data["allowedGenres"] = _split(args.genres)
    if args.authors is not None:
        data["allowedAuthors"] = _split(args.authors)
    if args.genre_filter is not None:
        data["enableGenreFilter"] = args.genre_filter == "on"
    if args.author_filter is not None:
        data["enableAuthorFilter"] = args.author_filter == "on"
    return save_filter_config(adapter, data)


def cmd_resync_categories(args):
    """Recompute every book's category from its genres."""
    with open_catalog() as adapter:
        stats = CatalogWriter(adapter, InternetArchiveFetcher.source_name).resync_categories()

    if stats["errors"]:
        warning(f"{len(stats['errors'])} book(s) could not be updated")
    success(f"Updated {stats['updated']} of {stats['examined']} book(s)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ingest public-domain books into the library catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser(
        "init",
        help="Create the catalog schema and apply migrations",
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Run one ingestion batch",
        description=(
            "Fetch the next page(s) of candidates, classify and filter them, and\n"
            "write the accepted ones to the catalog.\n\n"
            "Examples:\n"
            "  # Scheduled run with the default batch size\n"
            "  shelfstock-ingest run\n\n"
            "  # Preview what the next 10 candidates would do\n"
            "  shelfstock-ingest run --batch-size 10 --dry-run\n\n"
            "  # Operator-triggered run over three pages\n"
            "  shelfstock-ingest run --batch-size 30 --max 90 --manual\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument(
        "--batch-size",
        type=int,
        default=env.ingest_batch_size(),
        help=f"Candidates per page, 1-{MAX_BATCH_SIZE} (default: INGEST_BATCH_SIZE or 30)",
    )
    run_parser.add_argument(
        "--max",
        type=int,
        default=None,
        help="Stop after this many candidates, rounded up to whole pages (default: one page)",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch, classify and filter only; write nothing",
    )
    run_parser.add_argument(
        "--manual",
        action="store_true",
        help="Record the run as manual instead of scheduled",
    )
    run_parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")

    for name, help_text in (
        ("status", "Show resumption state"),
        ("resume", "Resume a paused source"),
        ("reset", "Restart a source from page 1"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--source",
            default=InternetArchiveFetcher.source_name,
            help=f"Source key (default: {InternetArchiveFetcher.source_name})",
        )
        if name == "status":
            sub.add_argument("--json", action="store_true", help="Print as JSON")

    pause_parser = subparsers.add_parser("pause", help="Pause a source before its next fetch")
    pause_parser.add_argument(
        "--source",
        default=InternetArchiveFetcher.source_name,
        help=f"Source key (default: {InternetArchiveFetcher.source_name})",
    )
    pause_parser.add_argument("--by", default=None, help="Who is pausing (recorded in state)")

    runs_parser = subparsers.add_parser("runs", help="List recent ingestion runs")
    runs_parser.add_argument("--limit", type=int, default=10, help="Number of runs (default: 10)")
    runs_parser.add_argument("--source", default=None, help="Only runs for this source")
    runs_parser.add_argument("--json", action="store_true", help="Print as JSON")

    stats_parser = subparsers.add_parser("filter-stats", help="Summarize filter decisions")
    stats_parser.add_argument(
        "--limit", type=int, default=10, help="Number of recent runs to analyze (default: 10)"
    )
    stats_parser.add_argument("--json", action="store_true", help="Print as JSON")

    filters_parser = subparsers.add_parser("filters", help="Show or change filter settings")
    filters_sub = filters_parser.add_subparsers(dest="filters_command")
    filters_sub.add_parser("show", help="Print the effective filter settings")
    set_parser = filters_sub.add_parser(
        "set",
        help="Store filter settings in the catalog",
        description=(
            "Update stored filter settings; omitted options keep their current value.\n\n"
            "Example:\n"
            '  shelfstock-ingest filters set --genres "Philosophy,Ethics" --genre-filter on\n'
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    set_parser.add_argument("--genres", default=None, help="Comma-separated allowed genres")
    set_parser.add_argument("--authors", default=None, help="Comma-separated allowed authors")
    set_parser.add_argument("--genre-filter", choices=["on", "off"], default=None)
    set_parser.add_argument("--author-filter", choices=["on", "off"], default=None)

    subparsers.add_parser(
        "resync-categories",
        help="Recompute book categories from stored genres",
    )

    return parser


COMMANDS = {
    "init": cmd_init,
    "run": cmd_run,
    "status": cmd_status,
    "pause": cmd_pause,
    "resume": cmd_resume,
    "reset": cmd_reset,
    "runs": cmd_runs,
    "filter-stats": cmd_filter_stats,
    "filters": cmd_filters,
    "resync-categories": cmd_resync_categories,
}


def main(argv: list[str] | None = None):
    """Main entry point for the ingestion CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "filters" and not args.filters_command:
        args.filters_command = "show"

    setup_logging(log_file=args.log_file)

    try:
        COMMANDS[args.command](args)
    except ConfigurationError as e:
        error(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
