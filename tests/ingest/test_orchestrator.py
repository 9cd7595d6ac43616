"""Tests for IngestionOrchestrator runs against a real SQLite catalog."""

from unittest.mock import Mock, patch

import pytest

from ingest.clients.archive import InternetArchiveFetcher
from ingest.clients.base import SourceFetcher
from ingest.errors import AssetError, ConfigurationError, SourceError
from ingest.filters import FilterConfig, save_filter_config
from ingest.models import ClassificationResult, FetchResult
from ingest.orchestrator import IngestionOrchestrator
from ingest.state import StateStore

SOURCE = "test_source"


class FakeFetcher(SourceFetcher):
    """Serves fixed pages; an empty page means the source is exhausted."""

    source_name = SOURCE

    def __init__(self, pages=None, error=None, after_fetch=None):
        self.pages = pages or {}
        self.error = error
        self.after_fetch = after_fetch
        self.calls = []

    def fetch(self, page, page_size, cursor=None):
        self.calls.append((page, page_size))
        if self.error:
            raise self.error
        candidates = self.pages.get(page, [])[:page_size]
        if self.after_fetch:
            self.after_fetch(page)
        return FetchResult(candidates, page + 1 if candidates else page)

    def get_rate_limit(self):
        return (1, 0.0)


@pytest.fixture(autouse=True)
def no_filter_env(monkeypatch):
    for name in (
        "INGEST_ALLOWED_GENRES",
        "INGEST_ALLOWED_AUTHORS",
        "ENABLE_GENRE_FILTER",
        "ENABLE_AUTHOR_FILTER",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def candidates(make_candidate):
    return [make_candidate(f"book{i}") for i in range(1, 6)]


@pytest.fixture
def classifier():
    """Classifies every candidate as Philosophy unless overridden per identifier."""
    overrides = {}
    fake = Mock()
    fake.overrides = overrides
    fake.classify_candidate.side_effect = lambda c: overrides.get(
        c.identifier, ClassificationResult(["Philosophy"])
    )
    return fake


@pytest.fixture
def describer():
    fake = Mock()
    fake.generate_for.return_value = None
    return fake


@pytest.fixture
def build(catalog, classifier, describer):
    def _build(fetcher, downloader=None):
        return IngestionOrchestrator(
            adapter=catalog,
            fetcher=fetcher,
            classifier=classifier,
            describer=describer,
            downloader=downloader or Mock(),
            download_assets=downloader is not None,
        )

    return _build


def _books(catalog):
    return catalog.fetchall("SELECT * FROM books ORDER BY id")


class TestRun:
    """Tests for a single run."""

    def test_genre_filter_scenario(self, catalog, build, classifier, candidates):
        """Test five candidates with one filtered by genre."""
        save_filter_config(
            catalog, FilterConfig(allowed_genres=["Philosophy"], enable_genre_filter=True)
        )
        classifier.overrides["book3"] = ClassificationResult(["Science"])

        summary = build(FakeFetcher({1: candidates})).run(batch_size=5)

        assert (summary.processed, summary.added, summary.skipped, summary.failed) == (5, 4, 1, 0)
        assert summary.status == "completed"
        assert summary.next_page == 2
        assert [b["source_identifier"] for b in _books(catalog)] == [
            "book1",
            "book2",
            "book4",
            "book5",
        ]

        results = catalog.fetchall(
            "SELECT filter_result FROM ingestion_filter_stats WHERE job_id = ?",
            (summary.job_id,),
        )
        assert sorted(r["filter_result"] for r in results) == ["filtered_genre"] + ["passed"] * 4

        state = StateStore(catalog).get(SOURCE)
        assert state.last_page == 2
        assert state.total_ingested == 4
        assert state.last_run_status == "completed"

    def test_one_failure_does_not_stop_run(self, build, candidates):
        """Test a failing candidate is counted and the rest are processed."""

        def download(candidate):
            if candidate.identifier == "book3":
                raise AssetError("Asset is not a PDF")
            return None

        downloader = Mock()
        downloader.download.side_effect = download

        summary = build(FakeFetcher({1: candidates}), downloader=downloader).run(batch_size=5)

        assert (summary.processed, summary.added, summary.failed) == (5, 4, 1)
        assert summary.status == "partial"
        assert [o.outcome for o in summary.outcomes] == [
            "added",
            "added",
            "failed",
            "added",
            "added",
        ]
        assert summary.errors == [{"identifier": "book3", "error": "Asset is not a PDF"}]

    def test_all_failures_mark_run_failed(self, catalog, build, describer, candidates):
        """Test unexpected errors are counted and the run is marked failed."""
        describer.generate_for.side_effect = RuntimeError("boom")

        summary = build(FakeFetcher({1: candidates[:2]})).run(batch_size=5)

        assert summary.failed == 2
        assert summary.status == "failed"
        assert summary.errors[0]["error"] == "Unexpected error: boom"
        assert _books(catalog) == []

    def test_step_order(self, catalog, build, classifier, candidates):
        """Test filtering happens before download and rejected books are never downloaded."""
        save_filter_config(
            catalog, FilterConfig(allowed_genres=["Philosophy"], enable_genre_filter=True)
        )
        classifier.overrides["book2"] = ClassificationResult(["Science"])
        downloader = Mock()
        downloader.download.return_value = None

        summary = build(FakeFetcher({1: candidates[:2]}), downloader=downloader).run(batch_size=5)

        accepted, rejected = summary.outcomes
        assert accepted.steps == ["classify", "filter", "download", "describe", "write"]
        assert rejected.steps == ["classify", "filter"]
        assert rejected.reason == "filtered_genre"
        downloader.download.assert_called_once()
        assert downloader.download.call_args.args[0].identifier == "book1"

    def test_no_filter_step_without_active_filters(self, build, candidates):
        """Test the filter step is skipped and no decisions are recorded."""
        summary = build(FakeFetcher({1: candidates[:1]})).run(batch_size=5)

        assert summary.outcomes[0].steps == ["classify", "describe", "write"]

    def test_unclassified_book_is_still_cataloged(self, catalog, build, classifier, candidates):
        """Test a classification failure does not block ingestion."""
        classifier.overrides["book1"] = None

        summary = build(FakeFetcher({1: candidates[:1]})).run(batch_size=5)

        assert summary.added == 1
        book = _books(catalog)[0]
        assert book["category"] == "Uncategorized"
        assert book["genres"] is None

    def test_generated_description_preferred(self, catalog, build, describer, candidates):
        """Test a generated description replaces the source's."""
        describer.generate_for.return_value = "A generated description."

        build(FakeFetcher({1: candidates[:1]})).run(batch_size=5)

        assert _books(catalog)[0]["description"] == "A generated description."

    def test_missing_author_fails_candidate(self, build, make_candidate):
        """Test a malformed candidate is counted as failed."""
        summary = build(FakeFetcher({1: [make_candidate("noauthor", author="")]})).run()

        assert summary.failed == 1
        assert "no author" in summary.errors[0]["error"]

    def test_duplicate_within_page(self, catalog, build, make_candidate):
        """Test the same identifier twice in one page is added once."""
        page = [make_candidate("same"), make_candidate("same")]

        summary = build(FakeFetcher({1: page})).run()

        assert (summary.added, summary.skipped) == (1, 1)
        assert summary.outcomes[1].reason == "duplicate"
        assert len(_books(catalog)) == 1


class TestResumption:
    """Tests for idempotence, pausing and multi-page runs."""

    def test_rerun_same_page_adds_nothing(self, catalog, build, classifier, candidates):
        """Test re-processing an ingested page produces no new rows."""
        fetcher = FakeFetcher({1: candidates})
        build(fetcher).run(batch_size=5)

        StateStore(catalog).reset(SOURCE)
        summary = build(fetcher).run(batch_size=5)

        assert summary.added == 0
        assert summary.skipped == 5
        assert summary.status == "completed"
        assert classifier.classify_candidate.call_count == 5
        assert len(_books(catalog)) == 5

    def test_continues_from_stored_page(self, build, make_candidate):
        """Test the second run fetches the page after the first."""
        fetcher = FakeFetcher(
            {1: [make_candidate("p1")], 2: [make_candidate("p2")]}
        )
        build(fetcher).run(batch_size=1)
        summary = build(fetcher).run(batch_size=1)

        assert [page for page, _ in fetcher.calls] == [1, 2]
        assert summary.next_page == 3

    def test_paused_source_is_idle(self, catalog, build, candidates):
        """Test a paused source neither fetches nor logs a run."""
        StateStore(catalog).pause(SOURCE, actor="ops")
        fetcher = FakeFetcher({1: candidates})

        summary = build(fetcher).run(batch_size=5)

        assert summary.status == "idle"
        assert summary.processed == 0
        assert fetcher.calls == []
        assert catalog.fetchall("SELECT * FROM ingestion_logs") == []

    def test_pause_during_run_stops_before_next_fetch(self, catalog, build, make_candidate):
        """Test a pause requested mid-run finishes the current page only."""
        store = StateStore(catalog)
        fetcher = FakeFetcher(
            {page: [make_candidate(f"p{page}-{i}") for i in range(2)] for page in (1, 2, 3)},
            after_fetch=lambda page: store.pause(SOURCE, actor="ops"),
        )

        summary = build(fetcher).run(batch_size=2, max_candidates=6)

        assert len(fetcher.calls) == 1
        assert summary.processed == 2
        assert summary.next_page == 2
        assert store.get(SOURCE).last_page == 2

    def test_max_candidates_spans_pages(self, build, make_candidate):
        """Test whole pages are fetched until the cap is reached."""
        fetcher = FakeFetcher(
            {page: [make_candidate(f"p{page}-{i}") for i in range(2)] for page in range(1, 6)}
        )

        summary = build(fetcher).run(batch_size=2, max_candidates=5)

        assert [page for page, _ in fetcher.calls] == [1, 2, 3]
        assert summary.processed == 6
        assert summary.next_page == 4

    def test_exhausted_source_keeps_page(self, catalog, build, make_candidate):
        """Test an empty page ends the run without advancing the pointer."""
        fetcher = FakeFetcher({1: [make_candidate("only")]})

        summary = build(fetcher).run(batch_size=1, max_candidates=3)

        assert [page for page, _ in fetcher.calls] == [1, 2]
        assert summary.next_page == 2
        assert summary.status == "completed"


class TestFailuresAndDryRun:
    """Tests for fetch failures, dry runs and argument validation."""

    def test_fetch_failure_marks_run_failed(self, catalog, build):
        """Test a source error is recorded as a job-level error."""
        summary = build(FakeFetcher(error=SourceError("Internet Archive API timeout"))).run()

        assert summary.status == "failed"
        assert summary.errors == [{"identifier": "job", "error": "Internet Archive API timeout"}]

        run = catalog.fetchone("SELECT * FROM ingestion_logs WHERE id = ?", (summary.job_id,))
        assert run["status"] == "failed"
        assert StateStore(catalog).get(SOURCE).last_page == 1

    def test_unexpected_fetch_error_finalizes_run(self, catalog, build):
        """Test a non-ingestion error from the fetcher still closes the run log."""
        fetcher = FakeFetcher(error=AttributeError("'list' object has no attribute 'get'"))

        summary = build(fetcher).run()

        assert summary.status == "failed"
        assert summary.errors[0]["identifier"] == "job"
        assert summary.errors[0]["error"].startswith("Unexpected error:")

        run = catalog.fetchone("SELECT * FROM ingestion_logs WHERE id = ?", (summary.job_id,))
        assert run["status"] == "failed"
        assert run["completed_at"] is not None
        assert StateStore(catalog).get(SOURCE).last_run_status == "failed"

    @patch("requests.Session.get")
    @pytest.mark.parametrize(
        "payload,expected_status",
        [(["oops"], "failed"), ({"response": {"docs": ["abc"]}}, "completed")],
    )
    def test_malformed_archive_response(
        self, mock_get, payload, expected_status, catalog, classifier, describer
    ):
        """Test malformed archive payloads never leave a run stuck at running."""
        response = Mock(status_code=200, headers={})
        response.json.return_value = payload
        mock_get.return_value = response
        orchestrator = IngestionOrchestrator(
            adapter=catalog,
            fetcher=InternetArchiveFetcher(timeout=1, min_delay=0),
            classifier=classifier,
            describer=describer,
            downloader=Mock(),
            download_assets=False,
        )

        summary = orchestrator.run(batch_size=5)

        assert summary.status == expected_status
        runs = catalog.fetchall("SELECT status, completed_at FROM ingestion_logs")
        assert len(runs) == 1
        assert runs[0]["status"] == expected_status
        assert runs[0]["completed_at"] is not None

    def test_dry_run_writes_nothing(self, catalog, build, describer, candidates):
        """Test a dry run classifies and filters but persists nothing."""
        save_filter_config(
            catalog, FilterConfig(allowed_genres=["Philosophy"], enable_genre_filter=True)
        )

        summary = build(FakeFetcher({1: candidates})).run(batch_size=5, dry_run=True)

        assert summary.dry_run is True
        assert summary.added == 5
        assert summary.job_id is None
        assert all(o.steps == ["classify", "filter"] for o in summary.outcomes)
        describer.generate_for.assert_not_called()
        assert _books(catalog) == []
        assert catalog.fetchall("SELECT * FROM ingestion_logs") == []
        assert catalog.fetchall("SELECT * FROM ingestion_filter_stats") == []
        assert catalog.fetchscalar("SELECT COUNT(*) FROM ingestion_state") == 0

    def test_dry_run_keeps_existing_state(self, catalog, build, candidates):
        """Test a dry run reads the stored page without updating the row."""
        StateStore(catalog).set_resumption_point(SOURCE, 2)
        fetcher = FakeFetcher({2: candidates})

        summary = build(fetcher).run(batch_size=5, max_candidates=10, dry_run=True)

        assert fetcher.calls[0] == (2, 5)
        assert summary.next_page == 3
        state = StateStore(catalog).get(SOURCE)
        assert state.last_page == 2
        assert state.last_run_status == "idle"

    def test_summary_document(self, build, candidates):
        """Test the scheduler-facing summary keys."""
        summary = build(FakeFetcher({1: candidates[:1]})).run(batch_size=5)

        data = summary.to_dict()
        assert data["jobId"] == summary.job_id
        assert data["status"] == "completed"
        assert data["nextPage"] == 2
        assert data["errors"] == []
        assert data["completedAt"] is not None

    @pytest.mark.parametrize(
        "kwargs", [{"batch_size": 0}, {"batch_size": 101}, {"max_candidates": 0}]
    )
    def test_invalid_arguments(self, build, kwargs):
        """Test out-of-range arguments are rejected before fetching."""
        fetcher = FakeFetcher()
        with pytest.raises(ConfigurationError):
            build(fetcher).run(**kwargs)
        assert fetcher.calls == []
