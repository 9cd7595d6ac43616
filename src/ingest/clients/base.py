"""Abstract base class for source fetchers."""

from abc import ABC, abstractmethod

from ingest.models import FetchResult


class SourceFetcher(ABC):
    """Base class for all public-domain sources.

    A fetcher turns one page of a source's listing into BookCandidates. It
    does not rate limit itself; the orchestrator spaces calls out using
    ``min_delay_seconds``.
    """

    #: Key stored in books.source and ingestion_state.source
    source_name: str

    @abstractmethod
    def fetch(self, page: int, page_size: int, cursor: str | None = None) -> FetchResult:
        """Fetch one page of candidates.

        Results are deterministic for a given (page, page_size) so a resumed
        run sees the same candidates again.

        Args:
            page: 1-based page number
            page_size: Number of records per page
            cursor: Opaque continuation token for cursor-based sources

        Returns:
            Candidates plus the continuation for the next run

        Raises:
            SourceError: If the request fails or times out
            RateLimitError: If the source answers HTTP 429
        """
        pass

    @abstractmethod
    def get_rate_limit(self) -> tuple[int, float]:
        """Get rate limit configuration for this source.

        Returns:
            Tuple of (requests_per_period, period_seconds)
            Example: (1, 1.5) means one request every 1.5 seconds
        """
        pass
