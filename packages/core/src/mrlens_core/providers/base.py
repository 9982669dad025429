"""Base LLM provider implementing the Template Method pattern.

All providers expose the same two operations:
    complete() → _call_api()     single-shot prompt → text
    stream()   → _stream_api()   ordered chat turns → lazy text increments

Subclasses implement three things only:
  - MODELS: the concrete model id for each tier ("fast", "deep")
  - __init__: validate and store the SDK client
  - _call_api / _stream_api: one raw SDK call each

Error translation lives here so every provider surfaces SDK failures the same
way, as UpstreamError. There is no retry: a failed facet degrades
and a failed pipeline is restarted by the user.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterator

from mrlens_core.errors import UpstreamError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096

FAST = "fast"
DEEP = "deep"


class BaseLLM(ABC):
    MODELS: dict[str, str] = {}
    TEMPERATURE: float = 0.3
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def model_for(self, tier: str) -> str:
        try:
            return self.MODELS[tier]
        except KeyError:
            raise ValueError(f"Unknown model tier: {tier!r}. Choose one of {sorted(self.MODELS)}.")

    def complete(self, prompt: str, tier: str = DEEP, max_tokens: int | None = None) -> str:
        """Send a single prompt and return the whole text response."""
        model = self.model_for(tier)
        try:
            return self._call_api(prompt, model, max_tokens or self.MAX_TOKENS)
        except Exception as e:
            logger.error("%s call to %s failed: %s", self.__class__.__name__, model, e)
            raise UpstreamError(f"{self.__class__.__name__} request failed: {e}") from e

    def stream(
        self,
        messages: list[dict],
        tier: str = DEEP,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> Iterator[str]:
        """Yield text increments for a chat conversation.

        ``messages`` are ``{"role": "user"|"assistant", "content": str}`` dicts.
        Closing the returned generator closes the underlying SDK stream.
        """
        model = self.model_for(tier)
        try:
            yield from self._stream_api(messages, model, system, max_tokens or self.MAX_TOKENS)
        except Exception as e:
            logger.error("%s stream from %s failed: %s", self.__class__.__name__, model, e)
            raise UpstreamError(f"{self.__class__.__name__} stream failed: {e}") from e

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, prompt: str, model: str, max_tokens: int) -> str:
        """Make a single completion call and return the raw text. Raise on failure."""

    @abstractmethod
    def _stream_api(self, messages: list[dict], model: str, system: str | None, max_tokens: int) -> Iterator[str]:
        """Yield text chunks from one streaming call. Raise on failure."""
