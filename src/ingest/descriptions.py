"""AI-generated catalog descriptions."""

from common.constants import MAX_PROMPT_DESCRIPTION_CHARS, UNKNOWN_PLACEHOLDER
from common.env import env
from common.logger import get_logger
from ingest.errors import TransientServiceError
from ingest.models import BookCandidate

from .clients.openrouter import OpenRouterClient
from .clients.retry import retry_on_none

logger = get_logger(__name__)

DESCRIPTION_MAX_TOKENS = 500
MIN_DESCRIPTION_LENGTH = 50
DESCRIPTION_ATTEMPTS = 3
DESCRIPTION_RETRY_DELAY = 0.5


def build_prompt(
    title: str | None,
    author: str | None,
    year: int | None = None,
    description: str | None = None,
) -> str:
    source_description = description[:MAX_PROMPT_DESCRIPTION_CHARS] if description else ""

    lines = [
        "You are an expert librarian writing book descriptions for a digital library catalog.",
        "",
        "Book Information:",
        f"- Title: {title or UNKNOWN_PLACEHOLDER}",
        f"- Author: {author or UNKNOWN_PLACEHOLDER}",
        f"- Year: {year or UNKNOWN_PLACEHOLDER}",
    ]
    if source_description:
        lines.append(f"- Source Description: {source_description}")
    lines += [
        "",
        "Write a professional book description of 150-200 words covering the main subject",
        "matter, key topics, intended readers and historical context where relevant.",
    ]
    if source_description:
        lines.append("You may use the source description as reference but expand and improve it.")
    lines.append("Respond with ONLY the description text, no JSON and no formatting.")
    return "\n".join(lines)


class DescriptionGenerator:
    """Generate a catalog description for a candidate via OpenRouter.

    Up to three attempts are made, 0.5s apart. A reply shorter than 50
    characters counts as a failed attempt.
    """

    def __init__(
        self,
        client: OpenRouterClient | None = None,
        model: str | None = None,
        timeout: float | None = None,
        retry_delay: float = DESCRIPTION_RETRY_DELAY,
    ):
        if client is None:
            api_key = env.openrouter_api_key()
            client = OpenRouterClient(api_key) if api_key else None

        self.client = client
        self.model = model or env.description_model()
        self.timeout = timeout if timeout is not None else env.description_timeout()
        self._attempt = retry_on_none(
            attempts=DESCRIPTION_ATTEMPTS,
            delay_seconds=retry_delay,
            retry_on=(TransientServiceError,),
        )(self._generate_once)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _generate_once(self, prompt: str) -> str | None:
        reply = self.client.complete(
            prompt,
            model=self.model,
            max_tokens=DESCRIPTION_MAX_TOKENS,
            timeout=self.timeout,
        ).strip()
        if len(reply) < MIN_DESCRIPTION_LENGTH:
            return None
        return reply

    def generate(
        self,
        title: str | None,
        author: str | None,
        year: int | None = None,
        description: str | None = None,
    ) -> str | None:
        """Generate a description, or None once every attempt has failed.

        Never raises.
        """
        if not self.enabled:
            return None

        result = self._attempt(build_prompt(title, author, year, description))
        if result is None:
            logger.warning(
                f"[yellow]⚠[/yellow] No description generated for '{title}' "
                f"after {DESCRIPTION_ATTEMPTS} attempts"
            )
        else:
            logger.debug(f"Generated description for '{title}' ({len(result)} chars)")
        return result

    def generate_for(self, candidate: BookCandidate) -> str | None:
        return self.generate(
            candidate.title, candidate.author, candidate.year, candidate.description
        )
