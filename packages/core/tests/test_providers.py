"""Tests for LLM provider implementations.

Shared behaviour (tier resolution, error translation, stream lifecycle) lives
in BaseLLM and is tested once via a lightweight stub, not duplicated per
provider. Provider-specific tests cover only the SDK calls.
"""

from unittest.mock import MagicMock, patch

import pytest

from mrlens_core.errors import UpstreamError
from mrlens_core.providers.anthropic import AnthropicLLM
from mrlens_core.providers.base import DEEP, FAST, BaseLLM
from mrlens_core.providers.openai import OpenAILLM


class _StubLLM(BaseLLM):
    """Minimal concrete subclass that records what it was asked."""

    MODELS = {FAST: "stub-fast", DEEP: "stub-deep"}

    def __init__(self, chunks=("Hello", ", ", "world")):
        self.calls = []
        self.chunks = chunks
        self.closed = False

    def _call_api(self, prompt, model, max_tokens):
        self.calls.append((prompt, model, max_tokens))
        return "<summary>ok</summary>"

    def _stream_api(self, messages, model, system, max_tokens):
        self.calls.append((messages, model, system, max_tokens))
        try:
            yield from self.chunks
        finally:
            self.closed = True


# ---------------------------------------------------------------------------
# Shared behaviour, tested once through the stub
# ---------------------------------------------------------------------------


class TestBaseLLMComplete:
    def test_tier_selects_model(self):
        llm = _StubLLM()
        llm.complete("p", FAST, 100)
        llm.complete("p", DEEP, 200)
        assert [c[1] for c in llm.calls] == ["stub-fast", "stub-deep"]
        assert [c[2] for c in llm.calls] == [100, 200]

    def test_default_budget_applied(self):
        llm = _StubLLM()
        llm.complete("p")
        assert llm.calls[0][2] == BaseLLM.MAX_TOKENS

    def test_unknown_tier_rejected(self):
        with pytest.raises(ValueError, match="tier"):
            _StubLLM().complete("p", "medium")

    def test_sdk_failure_becomes_upstream_error(self):
        class _Failing(_StubLLM):
            def _call_api(self, prompt, model, max_tokens):
                raise RuntimeError("503 overloaded")

        with pytest.raises(UpstreamError, match="503 overloaded"):
            _Failing().complete("p")


class TestBaseLLMStream:
    def test_yields_chunks_in_order(self):
        assert list(_StubLLM().stream([{"role": "user", "content": "hi"}])) == ["Hello", ", ", "world"]

    def test_is_lazy(self):
        llm = _StubLLM()
        llm.stream([{"role": "user", "content": "hi"}], system="sys")
        assert llm.calls == []

    def test_closing_early_closes_provider_stream(self):
        llm = _StubLLM()
        gen = llm.stream([{"role": "user", "content": "hi"}])
        assert next(gen) == "Hello"
        gen.close()
        assert llm.closed is True

    def test_stream_failure_becomes_upstream_error(self):
        class _Failing(_StubLLM):
            def _stream_api(self, messages, model, system, max_tokens):
                yield "partial"
                raise RuntimeError("connection reset")

        gen = _Failing().stream([{"role": "user", "content": "hi"}])
        assert next(gen) == "partial"
        with pytest.raises(UpstreamError, match="connection reset"):
            next(gen)


# ---------------------------------------------------------------------------
# Provider-specific
# ---------------------------------------------------------------------------


class TestAnthropicLLM:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError):
                AnthropicLLM(api_key="key")

    def test_models_are_claude(self):
        assert "haiku" in AnthropicLLM.MODELS[FAST]
        assert "sonnet" in AnthropicLLM.MODELS[DEEP]

    def test_call_api_joins_text_blocks(self):
        from anthropic.types import TextBlock

        llm = AnthropicLLM(api_key="key")
        llm.client = MagicMock()
        llm.client.messages.create.return_value = MagicMock(
            content=[TextBlock(type="text", text="  <summary>"), TextBlock(type="text", text="x</summary>  ")]
        )
        assert llm.complete("prompt", FAST, 50) == "<summary>x</summary>"
        kwargs = llm.client.messages.create.call_args.kwargs
        assert kwargs["model"] == AnthropicLLM.MODELS[FAST]
        assert kwargs["max_tokens"] == 50

    def test_stream_passes_system_prompt(self):
        llm = AnthropicLLM(api_key="key")
        llm.client = MagicMock()
        llm.client.messages.stream.return_value.__enter__.return_value.text_stream = iter(["a", "b"])
        out = list(llm.stream([{"role": "user", "content": "q"}], DEEP, system="context"))
        assert out == ["a", "b"]
        assert llm.client.messages.stream.call_args.kwargs["system"] == "context"
        llm.client.messages.stream.return_value.__exit__.assert_called_once()


class TestOpenAILLM:
    def test_raises_import_error_without_sdk(self):
        import mrlens_core.providers.openai as openai_mod

        real_openai = openai_mod._OpenAI
        openai_mod._OpenAI = None
        try:
            with pytest.raises(ImportError):
                OpenAILLM(api_key="key")
        finally:
            openai_mod._OpenAI = real_openai

    def test_models_are_gpt(self):
        assert OpenAILLM.MODELS[FAST] == "gpt-4o-mini"
        assert OpenAILLM.MODELS[DEEP] == "gpt-4o"

    def test_stream_prepends_system_and_closes(self):
        llm = OpenAILLM(api_key="key")
        llm.client = MagicMock()

        def _chunk(text):
            chunk = MagicMock()
            chunk.choices = [MagicMock()]
            chunk.choices[0].delta.content = text
            return chunk

        stream = MagicMock()
        stream.__iter__.return_value = iter([_chunk("a"), _chunk(None), _chunk("b")])
        llm.client.chat.completions.create.return_value = stream

        out = list(llm.stream([{"role": "user", "content": "q"}], DEEP, system="context"))

        assert out == ["a", "b"]
        messages = llm.client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "context"}
        stream.close.assert_called_once()
