"""Download and validate book assets (PDFs) for accepted candidates."""

import re
from pathlib import Path

import requests

from common.constants import USER_AGENT
from common.env import env
from common.logger import get_logger
from ingest.errors import AssetError, ValidationError
from ingest.models import BookCandidate

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF"
MAX_FILENAME_LENGTH = 200
CHUNK_SIZE = 64 * 1024


def sanitize_filename(identifier: str) -> str:
    """Make an identifier safe to use as a file name.

    Unsafe characters become ``_``, runs of ``_`` collapse, leading and
    trailing ``_`` are trimmed, and the result is cut to 200 characters.

    Raises:
        ValidationError: If identifier is empty or not a string

    Example:
        >>> sanitize_filename("the republic (1901)")
        'the_republic_1901'
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError("Invalid identifier: must be a non-empty string")

    sanitized = re.sub(r"[^a-zA-Z0-9_-]", "_", identifier)
    sanitized = re.sub(r"_+", "_", sanitized).strip("_")
    return (sanitized or "unnamed")[:MAX_FILENAME_LENGTH]


def is_valid_pdf(head: bytes) -> bool:
    """Check the leading bytes for the PDF magic number."""
    return head[: len(PDF_MAGIC)] == PDF_MAGIC


class AssetDownloader:
    """Stream an asset, validate it, and optionally keep a local copy.

    When ``asset_dir`` is None the asset is still streamed and validated (a
    rejected asset fails the candidate) but nothing is written to disk.
    """

    def __init__(
        self,
        source: str,
        asset_dir: Path | None = None,
        max_bytes: int | None = None,
        timeout: float | None = None,
    ):
        """Initialize asset downloader.

        Args:
            source: Source key; files are stored under ``asset_dir/source``
            asset_dir: Directory to keep assets in (default: ASSET_DIR)
            max_bytes: Largest accepted asset (default: ASSET_MAX_BYTES)
            timeout: Request timeout in seconds (default: ASSET_TIMEOUT_SECONDS)
        """
        self.source = source
        self.asset_dir = asset_dir if asset_dir is not None else env.asset_dir()
        self.max_bytes = max_bytes if max_bytes is not None else env.asset_max_bytes()
        self.timeout = timeout if timeout is not None else env.asset_timeout()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def target_path(self, identifier: str) -> Path | None:
        """Where the asset for an identifier is kept, or None if not kept."""
        if self.asset_dir is None:
            return None
        return Path(self.asset_dir) / self.source / f"{sanitize_filename(identifier)}.pdf"

    def download(self, candidate: BookCandidate) -> str | None:
        """Download and validate a candidate's asset.

        Returns:
            Path of the stored copy, or None when assets are not kept

        Raises:
            AssetError: If the download fails, times out, is too large, empty,
                or not a PDF
        """
        target = self.target_path(candidate.identifier)
        if target is not None and target.exists():
            logger.debug(f"Asset already stored: {target}")
            return str(target)

        logger.debug(f"Downloading asset {candidate.asset_url}")
        partial = target.with_suffix(".pdf.part") if target is not None else None

        try:
            with self.session.get(candidate.asset_url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()

                declared = response.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    raise AssetError(
                        f"Asset too large: {int(declared)} bytes (max {self.max_bytes})"
                    )

                if partial is not None:
                    partial.parent.mkdir(parents=True, exist_ok=True)
                size = self._stream(response, partial)

        except requests.exceptions.Timeout as e:
            self._discard(partial)
            raise AssetError(f"Asset download timed out: {candidate.asset_url}") from e
        except requests.exceptions.RequestException as e:
            self._discard(partial)
            raise AssetError(f"Asset download failed: {e}") from e
        except AssetError:
            self._discard(partial)
            raise
        except OSError as e:
            self._discard(partial)
            raise AssetError(f"Could not store asset: {e}") from e

        logger.debug(f"Validated asset for {candidate.identifier} ({size} bytes)")
        if target is None:
            return None

        partial.replace(target)
        return str(target)

    def _stream(self, response: requests.Response, partial: Path | None) -> int:
        """Copy the body to ``partial`` (if given) while validating it."""
        size = 0
        head = b""
        handle = partial.open("wb") if partial is not None else None
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                if len(head) < len(PDF_MAGIC):
                    head += chunk[: len(PDF_MAGIC) - len(head)]
                    if len(head) >= len(PDF_MAGIC) and not is_valid_pdf(head):
                        raise AssetError("Asset is not a PDF")
                size += len(chunk)
                if size > self.max_bytes:
                    raise AssetError(f"Asset exceeds {self.max_bytes} bytes")
                if handle is not None:
                    handle.write(chunk)
        finally:
            if handle is not None:
                handle.close()

        if size == 0:
            raise AssetError("Asset is empty")
        if not is_valid_pdf(head):
            raise AssetError("Asset is not a PDF")
        return size

    @staticmethod
    def _discard(partial: Path | None) -> None:
        if partial is not None:
            partial.unlink(missing_ok=True)
