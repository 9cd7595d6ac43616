"""Shared constants for shelfstock.

For environment-based configuration (database settings, API keys, filters),
use the env module:
    from common.env import env
    batch_size = env.ingest_batch_size()
"""

from pathlib import Path

# Data directories
DATA_DIR = Path("./data")
DATABASE_PATH = DATA_DIR / "catalog.db"

# Source key for Internet Archive rows in ingestion_state and books.source
INTERNET_ARCHIVE_SOURCE = "internet_archive"

USER_AGENT = "shelfstock/1.0 (public-domain catalog ingestion)"

# Category assigned when a book has no classified genres
UNCATEGORIZED = "Uncategorized"

# Placeholders sent to AI services in place of missing metadata
UNKNOWN_PLACEHOLDER = "Unknown"
NO_DESCRIPTION_PLACEHOLDER = "No description available"

# Source descriptions are truncated before being sent to AI services
MAX_PROMPT_DESCRIPTION_CHARS = 500

DEFAULT_BATCH_SIZE = 30
MAX_BATCH_SIZE = 100

# Attribution headers sent to OpenRouter
APP_TITLE = "shelfstock"
APP_REFERER = "http://localhost"
