from __future__ import annotations

from typing import Iterator

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from mrlens_core.providers.base import DEEP, FAST, BaseLLM


class OpenAILLM(BaseLLM):
    MODELS = {
        FAST: "gpt-4o-mini",
        DEEP: "gpt-4o",
    }
    TEMPERATURE = 0.2

    def __init__(self, api_key: str):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'mrlens[openai]'"
            )
        self.client = _OpenAI(api_key=api_key)

    def _call_api(self, prompt: str, model: str, max_tokens: int) -> str:
        response = self.client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
        )
        return (response.choices[0].message.content or "").strip()

    def _stream_api(self, messages: list[dict], model: str, system: str | None, max_tokens: int) -> Iterator[str]:
        if system:
            messages = [{"role": "system", "content": system}, *messages]
        stream = self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=self.TEMPERATURE,
            max_tokens=max_tokens,
            stream=True,
        )
        try:
            for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        finally:
            stream.close()
