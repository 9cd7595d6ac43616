"""Internet Archive advanced-search client for public-domain books."""

import re
from typing import Any

import requests

from common.constants import INTERNET_ARCHIVE_SOURCE, USER_AGENT
from common.env import env
from common.logger import get_logger
from ingest.errors import RateLimitError, SourceError, ValidationError
from ingest.models import BookCandidate, FetchResult

from .base import SourceFetcher

logger = get_logger(__name__)

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_YEAR_PATTERN = re.compile(r"\d{4}")


def get_asset_url(identifier: str | None) -> str:
    """Derive the PDF download URL for an Internet Archive identifier.

    Args:
        identifier: Archive item identifier

    Returns:
        ``https://archive.org/download/{identifier}/{identifier}.pdf``

    Raises:
        ValidationError: If the identifier is empty or contains characters
            other than letters, digits, underscore and hyphen

    Example:
        >>> get_asset_url("meditations00marc")
        'https://archive.org/download/meditations00marc/meditations00marc.pdf'
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError("Invalid identifier: must be a non-empty string")
    if not _IDENTIFIER_PATTERN.match(identifier):
        raise ValidationError(f"Invalid identifier: {identifier!r}")
    return f"https://archive.org/download/{identifier}/{identifier}.pdf"


def parse_year(date: Any) -> int | None:
    """Extract the first four-digit run from an archive date field."""
    if isinstance(date, list):
        date = date[0] if date else None
    if not date:
        return None
    match = _YEAR_PATTERN.search(str(date))
    return int(match.group()) if match else None


def _join(value: Any, separator: str) -> str | None:
    if isinstance(value, list):
        return separator.join(str(v) for v in value) or None
    return value or None


def parse_document(doc: dict[str, Any]) -> BookCandidate:
    """Convert one advanced-search doc to a candidate.

    Raises:
        ValidationError: If the doc's identifier cannot produce an asset URL
    """
    identifier = doc.get("identifier") or ""
    language = doc.get("language")
    if isinstance(language, list):
        language = language[0] if language else None

    return BookCandidate(
        identifier=identifier,
        title=doc.get("title") or "Unknown Title",
        author=_join(doc.get("creator"), ", ") or "Unknown Author",
        year=parse_year(doc.get("date")),
        description=_join(doc.get("description"), " "),
        language=language or None,
        asset_url=get_asset_url(identifier),
    )


class InternetArchiveFetcher(SourceFetcher):
    """Client for the Internet Archive advanced-search API.

    Lists public-domain texts (published up to 1927) that have a PDF
    rendition, most downloaded first. Ordering is stable between calls, so a
    page number is a usable resumption point.

    API Documentation: https://archive.org/advancedsearch.php
    """

    source_name = INTERNET_ARCHIVE_SOURCE

    SEARCH_URL = "https://archive.org/advancedsearch.php"
    QUERY = "mediatype:texts AND format:pdf AND date:[* TO 1927]"
    FIELDS = ["identifier", "title", "creator", "date", "language", "description"]
    SORT = "downloads desc"

    def __init__(self, timeout: float | None = None, min_delay: float | None = None):
        """Initialize Internet Archive client.

        Args:
            timeout: Request timeout in seconds (default: SOURCE_TIMEOUT_SECONDS)
            min_delay: Minimum seconds between calls (default: SOURCE_MIN_DELAY_SECONDS)
        """
        self.timeout = timeout if timeout is not None else env.source_timeout()
        self.min_delay = min_delay if min_delay is not None else env.source_min_delay()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    def get_rate_limit(self) -> tuple[int, float]:
        return (1, self.min_delay)

    def build_params(self, page: int, page_size: int) -> dict[str, Any]:
        """Query parameters for one page of the listing."""
        return {
            "q": self.QUERY,
            "fl[]": self.FIELDS,
            "sort[]": self.SORT,
            "rows": page_size,
            "page": page,
            "output": "json",
        }

    def fetch(self, page: int, page_size: int, cursor: str | None = None) -> FetchResult:
        """Fetch one page of the listing.

        Docs without an identifier, or whose identifier cannot produce an
        asset URL, are dropped. ``next_page`` only advances when the page
        returned docs; an empty page means the listing is exhausted and the
        same page is retried next run.

        Raises:
            SourceError: If the request fails, times out, or returns bad JSON
            RateLimitError: If the archive answers HTTP 429
        """
        logger.debug(f"Fetching Internet Archive page {page} ({page_size} rows)")

        try:
            response = self.session.get(
                self.SEARCH_URL,
                params=self.build_params(page, page_size),
                timeout=self.timeout,
            )
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After", "unknown")
                raise RateLimitError(
                    f"Internet Archive rate limit exceeded (Retry-After: {retry_after})"
                )
            response.raise_for_status()
            data = response.json()

        except requests.exceptions.Timeout as e:
            raise SourceError(f"Internet Archive API timeout for page {page}") from e
        except requests.exceptions.RequestException as e:
            raise SourceError(f"Internet Archive API error: {e}") from e
        except ValueError as e:
            raise SourceError(f"Internet Archive returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SourceError(
                f"Internet Archive returned unexpected payload for page {page}: "
                f"{type(data).__name__}"
            )

        response_body = data.get("response")
        docs = response_body.get("docs") if isinstance(response_body, dict) else None
        if not isinstance(docs, list):
            logger.info("No documents found in Internet Archive response")
            docs = []

        candidates = []
        for doc in docs:
            if not isinstance(doc, dict):
                logger.warning(f"Skipping malformed archive doc: {doc!r:.80}")
                continue
            if not doc.get("identifier"):
                continue
            try:
                candidates.append(parse_document(doc))
            except ValidationError as e:
                logger.warning(f"Skipping archive doc: {e}")

        logger.info(f"Fetched {len(candidates)} candidate(s) from Internet Archive page {page}")

        return FetchResult(
            candidates=candidates,
            next_page=page + 1 if docs else page,
            next_cursor=cursor,
        )
