"""OpenRouter chat-completions client shared by the classifier and describer."""

from typing import Any

import requests

from common.constants import APP_REFERER, APP_TITLE
from common.logger import get_logger
from ingest.errors import RateLimitError, TransientServiceError

logger = get_logger(__name__)


class OpenRouterClient:
    """Minimal client for the OpenRouter chat-completions endpoint.

    Every failure (transport, timeout, auth, rate limit, unexpected payload)
    is raised as a TransientServiceError subclass; callers decide whether a
    failure is fatal.
    """

    API_URL = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, api_key: str, session: requests.Session | None = None):
        """Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            session: Optional shared session (a new one is created otherwise)
        """
        self.api_key = api_key
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": APP_REFERER,
                "X-Title": APP_TITLE,
            }
        )

    def complete(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        timeout: float,
        temperature: float = 0.3,
    ) -> str:
        """Send a single-message chat completion and return the reply text.

        Args:
            prompt: User message content
            model: OpenRouter model id
            max_tokens: Upper bound on the reply length
            timeout: Request timeout in seconds
            temperature: Sampling temperature

        Returns:
            Reply text (may be empty)

        Raises:
            RateLimitError: If OpenRouter answers HTTP 429
            TransientServiceError: On timeout, auth failure, HTTP error, or a
                response without ``choices[0].message``
        """
        payload: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = self.session.post(self.API_URL, json=payload, timeout=timeout)
            if response.status_code == 429:
                raise RateLimitError("OpenRouter rate limit exceeded")
            if response.status_code in (401, 403):
                raise TransientServiceError(f"OpenRouter rejected credentials ({response.status_code})")
            response.raise_for_status()
            data = response.json()

        except requests.exceptions.Timeout as e:
            raise TransientServiceError(f"OpenRouter timeout after {timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise TransientServiceError(f"OpenRouter API error: {e}") from e
        except ValueError as e:
            raise TransientServiceError(f"OpenRouter returned invalid JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise TransientServiceError("Invalid OpenRouter response structure") from e

        if content is not None and not isinstance(content, str):
            raise TransientServiceError("Invalid OpenRouter response structure")

        return content or ""
