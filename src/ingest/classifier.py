"""AI genre classification of book candidates.

The classifier asks a chat model to pick 1-3 primary genres and at most one
sub-genre from the taxonomy. The reply is parsed leniently and validated
against the taxonomy; anything unusable yields ``None`` so a bad or absent
classification never blocks ingestion.
"""

import json
import re
from typing import Any

from common.constants import (
    MAX_PROMPT_DESCRIPTION_CHARS,
    NO_DESCRIPTION_PLACEHOLDER,
    UNKNOWN_PLACEHOLDER,
)
from common.env import env
from common.logger import get_logger
from ingest.errors import TransientServiceError
from ingest.models import BookCandidate, ClassificationResult
from ingest.taxonomy import PRIMARY_GENRES, SUB_GENRES, validate_genres, validate_subgenre

from .clients.openrouter import OpenRouterClient

logger = get_logger(__name__)

CLASSIFIER_MAX_TOKENS = 150

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_prompt(
    title: str | None,
    author: str | None,
    year: int | None = None,
    description: str | None = None,
) -> str:
    """Build the classification prompt; missing fields get placeholders."""
    description_text = (
        description[:MAX_PROMPT_DESCRIPTION_CHARS] if description else NO_DESCRIPTION_PLACEHOLDER
    )
    return f"""You are a librarian classifying public-domain books. Analyze the book and assign genres.

BOOK INFORMATION:
Title: {title or UNKNOWN_PLACEHOLDER}
Author: {author or UNKNOWN_PLACEHOLDER}
Year: {year or UNKNOWN_PLACEHOLDER}
Description: {description_text}

ALLOWED PRIMARY GENRES (choose 1-3):
{", ".join(PRIMARY_GENRES)}

ALLOWED SUB-GENRES (choose 0-1):
{", ".join(SUB_GENRES)}

RULES:
1. Choose 1-3 primary genres that best describe the book
2. Optionally choose 1 sub-genre if applicable
3. Use ONLY genres from the lists above
4. Respond with ONLY valid JSON, no explanations or extra text

RESPONSE FORMAT (JSON only):
{{"genres": ["Genre1", "Genre2"], "subgenre": "SubGenre"}}

If no sub-genre applies, use: {{"genres": ["Genre1"], "subgenre": null}}"""


def parse_response(text: Any) -> ClassificationResult | None:
    """Parse a model reply into a validated classification.

    The first ``{...}`` span in the reply is decoded as JSON. ``genres`` must
    be a list; unknown genres are dropped, duplicates removed and at most
    three kept. An unknown sub-genre becomes None.

    Args:
        text: Raw reply content

    Returns:
        Validated classification, or None if no valid genre survives

    Example:
        >>> parse_response('Sure! {"genres": ["philosophy", "Cooking"], "subgenre": "ancient"}')
        ClassificationResult(genres=['Philosophy'], subgenre='Ancient')
    """
    if not text or not isinstance(text, str):
        logger.debug("Empty classifier response")
        return None

    match = _JSON_OBJECT.search(text)
    candidate = match.group() if match else text.strip()

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug(f"Unparseable classifier response: {e}")
        return None

    if not isinstance(parsed, dict) or not isinstance(parsed.get("genres"), list):
        logger.debug("Classifier response missing genres array")
        return None

    genres = validate_genres(parsed["genres"])
    if not genres:
        logger.debug("No valid genres in classifier response")
        return None

    return ClassificationResult(genres=genres, subgenre=validate_subgenre(parsed.get("subgenre")))


class GenreClassifier:
    """Classify candidates into taxonomy genres via OpenRouter."""

    def __init__(
        self,
        client: OpenRouterClient | None = None,
        model: str | None = None,
        timeout: float | None = None,
        enabled: bool | None = None,
    ):
        """Initialize classifier.

        Args:
            client: OpenRouter client (default: built from OPENROUTER_API_KEY)
            model: Model id (default: GENRE_CLASSIFIER_MODEL)
            timeout: Request timeout in seconds (default: GENRE_CLASSIFIER_TIMEOUT)
            enabled: Force on/off (default: ENABLE_GENRE_CLASSIFICATION and a key is set)
        """
        if client is None:
            api_key = env.openrouter_api_key()
            client = OpenRouterClient(api_key) if api_key else None

        self.client = client
        self.model = model or env.genre_classifier_model()
        self.timeout = timeout if timeout is not None else env.genre_classifier_timeout()
        if enabled is None:
            enabled = env.genre_classification_enabled()
        self.enabled = enabled and self.client is not None

    def classify(
        self,
        title: str | None,
        author: str | None,
        year: int | None = None,
        description: str | None = None,
    ) -> ClassificationResult | None:
        """Classify one book.

        Never raises: transport, auth, timeout and parse failures are logged
        and reported as None.

        Returns:
            Validated classification, or None if disabled or unsuccessful
        """
        if not self.enabled:
            return None

        prompt = build_prompt(title, author, year, description)
        try:
            reply = self.client.complete(
                prompt,
                model=self.model,
                max_tokens=CLASSIFIER_MAX_TOKENS,
                timeout=self.timeout,
            )
        except TransientServiceError as e:
            logger.warning(f"[yellow]⚠[/yellow] Classification unavailable for '{title}': {e}")
            return None

        result = parse_response(reply)
        if result is None:
            logger.warning(f"[yellow]⚠[/yellow] Unusable classification for '{title}'")
        else:
            logger.debug(f"Classified '{title}' as {result.genres} / {result.subgenre}")
        return result

    def classify_candidate(self, candidate: BookCandidate) -> ClassificationResult | None:
        return self.classify(
            candidate.title, candidate.author, candidate.year, candidate.description
        )
