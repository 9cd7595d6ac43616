"""Inclusion filters applied between classification and asset download.

Two independent allow-lists: genres (matched case-insensitively against the
classified genres) and authors (an allowed name must appear as a
case-insensitive substring of the candidate's author). The genre filter is
checked first. A filter with an empty allow-list lets everything through.

Settings come from the ``filter_settings`` row of ``ingestion_config`` when an
operator has saved one, otherwise from the environment.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from catalog.db import DatabaseAdapter
from common.env import env
from common.logger import get_logger
from ingest.errors import ConfigurationError
from ingest.models import BookCandidate, ClassificationResult, FilterDecision
from ingest.taxonomy import invalid_genre_names

logger = get_logger(__name__)

FILTER_SETTINGS_KEY = "filter_settings"


@dataclass
class FilterConfig:
    """Allow-lists and their on/off switches."""

    allowed_genres: list[str] = field(default_factory=list)
    allowed_authors: list[str] = field(default_factory=list)
    enable_genre_filter: bool = False
    enable_author_filter: bool = False

    @property
    def genre_filter_active(self) -> bool:
        return self.enable_genre_filter and bool(self.allowed_genres)

    @property
    def author_filter_active(self) -> bool:
        return self.enable_author_filter and bool(self.allowed_authors)

    @property
    def has_active_filters(self) -> bool:
        return self.genre_filter_active or self.author_filter_active

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the keys stored in ingestion_config."""
        return {
            "allowedGenres": list(self.allowed_genres),
            "allowedAuthors": list(self.allowed_authors),
            "enableGenreFilter": self.enable_genre_filter,
            "enableAuthorFilter": self.enable_author_filter,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "FilterConfig":
        """Build a config from a stored or operator-supplied document.

        Raises:
            ConfigurationError: If the document fails validation
        """
        errors = validate_filter_config(data)
        if errors:
            raise ConfigurationError("Invalid filter configuration: " + "; ".join(errors))

        return cls(
            allowed_genres=[g.strip() for g in data.get("allowedGenres", [])],
            allowed_authors=[a.strip() for a in data.get("allowedAuthors", [])],
            enable_genre_filter=data.get("enableGenreFilter", False),
            enable_author_filter=data.get("enableAuthorFilter", False),
        )

    @classmethod
    def from_env(cls) -> "FilterConfig":
        """Read INGEST_ALLOWED_GENRES / INGEST_ALLOWED_AUTHORS and the enable flags."""
        return cls(
            allowed_genres=env.allowed_genres(),
            allowed_authors=env.allowed_authors(),
            enable_genre_filter=env.genre_filter_enabled(),
            enable_author_filter=env.author_filter_enabled(),
        )

    @classmethod
    def load(cls, adapter: DatabaseAdapter | None = None) -> "FilterConfig":
        """Load the stored configuration, falling back to the environment.

        Args:
            adapter: Connected adapter; when None only the environment is read

        Raises:
            ConfigurationError: If the stored document is not valid JSON or
                fails validation
        """
        if adapter is not None:
            row = adapter.fetchone(
                "SELECT config_value FROM ingestion_config WHERE config_key = ?",
                (FILTER_SETTINGS_KEY,),
            )
            if row:
                try:
                    data = json.loads(row["config_value"])
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Stored filter configuration is not JSON: {e}") from e
                logger.debug("Loaded filter configuration from ingestion_config")
                return cls.from_dict(data)

        return cls.from_env()


def validate_genre_names(names: list[str]) -> list[str]:
    """Return the names that are not taxonomy primary genres."""
    return invalid_genre_names(names)


def validate_filter_config(data: Any) -> list[str]:
    """Check a filter document and describe every problem found.

    Returns:
        List of error messages (empty when valid)
    """
    if not isinstance(data, dict):
        return ["Configuration must be an object"]

    errors = []

    genres = data.get("allowedGenres", [])
    if not isinstance(genres, list):
        errors.append("allowedGenres must be an array")
    else:
        invalid = [g for g in genres if not isinstance(g, str)]
        invalid += validate_genre_names([g for g in genres if isinstance(g, str)])
        if invalid:
            errors.append(f"Invalid genres: {', '.join(str(g) for g in invalid)}")

    authors = data.get("allowedAuthors", [])
    if not isinstance(authors, list):
        errors.append("allowedAuthors must be an array")
    elif any(not isinstance(a, str) or not a.strip() for a in authors):
        errors.append("All author names must be non-empty strings")

    for flag in ("enableGenreFilter", "enableAuthorFilter"):
        if not isinstance(data.get(flag, False), bool):
            errors.append(f"{flag} must be a boolean")

    return errors


def save_filter_config(adapter: DatabaseAdapter, config: FilterConfig | dict[str, Any]) -> FilterConfig:
    """Validate and upsert the filter configuration.

    Raises:
        ConfigurationError: If the configuration fails validation
    """
    if isinstance(config, FilterConfig):
        config = config.to_dict()
    validated = FilterConfig.from_dict(config)

    adapter.execute(
        """
        INSERT INTO ingestion_config (config_key, config_value, updated_at)
        VALUES (?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT (config_key) DO UPDATE
        SET config_value = excluded.config_value, updated_at = CURRENT_TIMESTAMP
        """,
        (FILTER_SETTINGS_KEY, json.dumps(validated.to_dict())),
    )
    adapter.commit()
    logger.info("[green]✓[/green] Saved filter configuration")
    return validated


def _check_genres(genres: list[str], config: FilterConfig) -> str | None:
    """Return a rejection reason, or None if the genre filter passes."""
    if not config.genre_filter_active:
        return None
    if not genres:
        return "Book has no genres"

    allowed = {g.lower() for g in config.allowed_genres}
    if any(g.lower() in allowed for g in genres):
        return None
    return (
        f"Genre not in allowed list. Book genres: [{', '.join(genres)}], "
        f"Allowed: [{', '.join(config.allowed_genres)}]"
    )


def _check_author(author: str | None, config: FilterConfig) -> str | None:
    """Return a rejection reason, or None if the author filter passes."""
    if not config.author_filter_active:
        return None
    if not author or not author.strip():
        return "Book has no author"

    normalized = author.lower().strip()
    if any(allowed.lower().strip() in normalized for allowed in config.allowed_authors):
        return None
    return (
        f'Author not in allowed list. Book author: "{author}", '
        f"Allowed: [{', '.join(config.allowed_authors)}]"
    )


def evaluate(
    candidate: BookCandidate,
    classification: ClassificationResult | None,
    config: FilterConfig,
) -> FilterDecision:
    """Decide whether a classified candidate may be ingested.

    Example:
        >>> config = FilterConfig(allowed_genres=["Philosophy"], enable_genre_filter=True)
        >>> evaluate(candidate, ClassificationResult(["Science"]), config).result
        'filtered_genre'
    """
    genres = classification.genres if classification else []

    reason = _check_genres(genres, config)
    if reason:
        return FilterDecision("filtered_genre", genres, candidate.author, f"Genre filter failed: {reason}")

    reason = _check_author(candidate.author, config)
    if reason:
        return FilterDecision("filtered_author", genres, candidate.author, f"Author filter failed: {reason}")

    return FilterDecision("passed", genres, candidate.author)
