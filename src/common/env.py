"""Environment configuration interface for shelfstock.

This module provides a clean interface for accessing environment variables,
centralizing all environment variable access in one place.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


def _flag(name: str, default: bool) -> bool:
    """Read a boolean flag ('true'/'false') from the environment."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() == "true"


def _csv(name: str) -> list[str]:
    """Read a comma-separated list, dropping blank entries."""
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Environment:
    """Interface for accessing environment configuration."""

    # --- Database -------------------------------------------------------

    @staticmethod
    def database_type() -> str:
        """Get the database type (sqlite or postgresql).

        Returns:
            Database type, defaults to 'sqlite'
        """
        return os.getenv("DATABASE_TYPE", "sqlite")

    @staticmethod
    def database_path() -> Path:
        """Get the SQLite database file path.

        Returns:
            Path to SQLite database file, defaults to ./data/catalog.db
        """
        return Path(os.getenv("DATABASE_PATH", "./data/catalog.db"))

    @staticmethod
    def database_timeout() -> float:
        """Get the timeout applied to database connections and statements.

        Returns:
            Timeout in seconds, defaults to 10
        """
        return float(os.getenv("DATABASE_TIMEOUT_SECONDS", "10"))

    @staticmethod
    def postgres_host() -> str | None:
        """Get PostgreSQL host (no default; required when DATABASE_TYPE=postgresql)."""
        return os.getenv("POSTGRES_HOST")

    @staticmethod
    def postgres_port() -> int:
        """Get PostgreSQL port.

        Returns:
            PostgreSQL port, defaults to 5432
        """
        return int(os.getenv("POSTGRES_PORT", "5432"))

    @staticmethod
    def postgres_database() -> str | None:
        """Get PostgreSQL database name."""
        return os.getenv("POSTGRES_DB")

    @staticmethod
    def postgres_user() -> str | None:
        """Get PostgreSQL user."""
        return os.getenv("POSTGRES_USER")

    @staticmethod
    def postgres_password() -> str:
        """Get PostgreSQL password.

        Returns:
            Database password, defaults to empty string
        """
        return os.getenv("POSTGRES_PASSWORD", "")

    @staticmethod
    def postgres_pool_size() -> int:
        """Get PostgreSQL connection pool size.

        Returns:
            Pool size, defaults to 1 (ingestion runs hold a single connection)
        """
        return int(os.getenv("POSTGRES_POOL_SIZE", "1"))

    @staticmethod
    def postgres_pool_max_overflow() -> int:
        """Get PostgreSQL connection pool max overflow.

        Returns:
            Max overflow, defaults to 2
        """
        return int(os.getenv("POSTGRES_POOL_MAX_OVERFLOW", "2"))

    # --- Source ---------------------------------------------------------

    @staticmethod
    def ingest_batch_size() -> int:
        """Get the default number of candidates fetched per page.

        Returns:
            Batch size, defaults to 30
        """
        return int(os.getenv("INGEST_BATCH_SIZE", "30"))

    @staticmethod
    def source_min_delay() -> float:
        """Get the minimum delay between two calls to the source API.

        Returns:
            Delay in seconds, defaults to 1.5
        """
        return float(os.getenv("SOURCE_MIN_DELAY_SECONDS", "1.5"))

    @staticmethod
    def source_timeout() -> float:
        """Get the source API request timeout in seconds (default 30)."""
        return float(os.getenv("SOURCE_TIMEOUT_SECONDS", "30"))

    # --- AI services ----------------------------------------------------

    @staticmethod
    def openrouter_api_key() -> str | None:
        """Get the OpenRouter API key, or None when AI enrichment is unavailable."""
        return os.getenv("OPENROUTER_API_KEY") or None

    @staticmethod
    def genre_classifier_model() -> str:
        """Get the chat model used for genre classification."""
        return os.getenv("GENRE_CLASSIFIER_MODEL", "meta-llama/llama-3.2-3b-instruct:free")

    @staticmethod
    def genre_classifier_timeout() -> float:
        """Get the classification request timeout in seconds (default 15)."""
        return float(os.getenv("GENRE_CLASSIFIER_TIMEOUT", "15"))

    @staticmethod
    def genre_classification_enabled() -> bool:
        """Whether genre classification should run at all (default true)."""
        return _flag("ENABLE_GENRE_CLASSIFICATION", True)

    @staticmethod
    def description_model() -> str:
        """Get the chat model used for description generation."""
        return os.getenv("OPENROUTER_EXTRACTION_MODEL", "openai/gpt-4o-mini")

    @staticmethod
    def description_timeout() -> float:
        """Get the description request timeout in seconds (default 30)."""
        return float(os.getenv("DESCRIPTION_TIMEOUT", "30"))

    # --- Assets ---------------------------------------------------------

    @staticmethod
    def download_assets() -> bool:
        """Whether accepted candidates have their asset downloaded and validated."""
        return _flag("DOWNLOAD_ASSETS", True)

    @staticmethod
    def asset_dir() -> Path | None:
        """Get the directory downloaded assets are kept in (None = validate only)."""
        value = os.getenv("ASSET_DIR")
        return Path(value) if value else None

    @staticmethod
    def asset_max_bytes() -> int:
        """Get the largest accepted asset size in bytes (default 100 MiB)."""
        return int(os.getenv("ASSET_MAX_BYTES", str(100 * 1024 * 1024)))

    @staticmethod
    def asset_timeout() -> float:
        """Get the asset download timeout in seconds (default 30)."""
        return float(os.getenv("ASSET_TIMEOUT_SECONDS", "30"))

    # --- Filters --------------------------------------------------------

    @staticmethod
    def allowed_genres() -> list[str]:
        """Get the genre allow-list from INGEST_ALLOWED_GENRES."""
        return _csv("INGEST_ALLOWED_GENRES")

    @staticmethod
    def allowed_authors() -> list[str]:
        """Get the author allow-list from INGEST_ALLOWED_AUTHORS."""
        return _csv("INGEST_ALLOWED_AUTHORS")

    @staticmethod
    def genre_filter_enabled() -> bool:
        """Whether ENABLE_GENRE_FILTER is 'true'."""
        return _flag("ENABLE_GENRE_FILTER", False)

    @staticmethod
    def author_filter_enabled() -> bool:
        """Whether ENABLE_AUTHOR_FILTER is 'true'."""
        return _flag("ENABLE_AUTHOR_FILTER", False)


# Singleton instance for convenient access
env = Environment()
