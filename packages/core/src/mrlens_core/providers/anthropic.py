from __future__ import annotations

from typing import Iterator

from mrlens_core.providers.base import DEEP, FAST, BaseLLM


class AnthropicLLM(BaseLLM):
    MODELS = {
        FAST: "claude-3-5-haiku-latest",
        DEEP: "claude-3-5-sonnet-latest",
    }
    TEMPERATURE = 0.3

    def __init__(self, api_key: str):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install anthropic"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, prompt: str, model: str, max_tokens: int) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

    def _stream_api(self, messages: list[dict], model: str, system: str | None, max_tokens: int) -> Iterator[str]:
        kwargs = {"system": system} if system else {}
        with self.client.messages.stream(
            model=model,
            messages=messages,
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
            **kwargs,
        ) as stream:
            yield from stream.text_stream
