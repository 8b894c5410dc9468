"""Base LLM provider implementing the Template Method pattern.

Every prompt goes through the same path:
    complete() → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

JSON extraction lives here too, since every prompt in presubmit expects a
JSON object back regardless of the provider.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 8192


class ProviderError(RuntimeError):
    """Raised when a provider gives up after exhausting its retries."""


class BaseProvider(ABC):
    MODEL: str = ""
    TEMPERATURE: float = 0.2
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(self, model: str | None = None):
        self.model = model or self.MODEL

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the model's text response, retrying transient failures.

        Raises ``ProviderError`` once every attempt has failed.
        """
        raw = self._call_with_retry(system_prompt, user_prompt)
        if raw is None:
            raise ProviderError(f"{self.__class__.__name__} failed after {self.MAX_RETRIES} attempts")
        return raw

    def complete_json(self, system_prompt: str, user_prompt: str):
        """Like ``complete`` but decodes the response as JSON.

        Raises ``ValueError`` when the response is not valid JSON.
        """
        return parse_json_response(self.complete(system_prompt, user_prompt))

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str | None:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    return None
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        return None


def parse_json_response(raw: str):
    """Decode a model response that may be wrapped in a ```json fence."""
    # Strip only the outer fence, not backticks inside string values.
    cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
    cleaned = re.sub(r"\s*```$", "", cleaned.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model response is not valid JSON: {raw[:200]}") from e
