"""Exception hierarchy for the ingestion pipeline.

Only ConfigurationError (and state store failures) abort a run; the
orchestrator turns every other IngestionError into a counted per-candidate
outcome.
"""


class IngestionError(Exception):
    """Base exception for ingestion errors."""

    pass


class ValidationError(IngestionError):
    """A candidate or value is malformed (fatal to one candidate)."""

    pass


class TransientServiceError(IngestionError):
    """An external service timed out, refused, or returned garbage."""

    pass


class RateLimitError(TransientServiceError):
    """An external service answered HTTP 429."""

    pass


class SourceError(TransientServiceError):
    """The source API request failed."""

    pass


class AssetError(TransientServiceError):
    """An asset could not be downloaded or failed validation."""

    pass


class DuplicateError(IngestionError):
    """The candidate is already in the catalog."""

    def __init__(self, identifier: str):
        super().__init__(f"Already cataloged: {identifier}")
        self.identifier = identifier


class PersistenceError(IngestionError):
    """A catalog write failed for a reason other than a duplicate."""

    pass


class ConfigurationError(IngestionError):
    """Settings are invalid; the whole run cannot start."""

    pass
