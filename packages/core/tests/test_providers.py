"""Tests for LLM provider implementations.

Shared behaviour (JSON decoding, retry, error signalling) lives in
BaseProvider and is tested once via a lightweight stub. Provider-specific
tests cover only what differs: the SDK client setup and _call_api.
"""

import json
import types
from unittest.mock import MagicMock, patch

import pytest

from presubmit_core.providers.anthropic import AnthropicProvider
from presubmit_core.providers.base import BaseProvider, ProviderError, parse_json_response
from presubmit_core.providers.openai import OpenAIProvider

VALID_JSON = json.dumps({"comments": [{"file": "a.py", "end_line": 3, "header": "Missing error handling"}]})


class _StubProvider(BaseProvider):
    MODEL = "stub-1"

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        return VALID_JSON


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------


class TestParseJsonResponse:
    def test_parses_valid_json(self):
        assert parse_json_response(VALID_JSON)["comments"][0]["end_line"] == 3

    def test_strips_markdown_code_fences(self):
        assert "comments" in parse_json_response(f"```json\n{VALID_JSON}\n```")

    def test_preserves_code_blocks_inside_values(self):
        payload = json.dumps({"content": "Use this instead:\n```python\nfoo()\n```"})
        result = parse_json_response(f"```json\n{payload}\n```")
        assert "```python" in result["content"]

    def test_raises_value_error_on_invalid_json(self):
        with pytest.raises(ValueError):
            parse_json_response("not json at all")


class TestBaseProvider:
    def test_default_model(self):
        assert _StubProvider().model == "stub-1"

    def test_model_override(self):
        assert _StubProvider(model="stub-2").model == "stub-2"

    def test_complete_json(self):
        assert _StubProvider().complete_json("sys", "user")["comments"][0]["file"] == "a.py"


class TestBaseProviderRetry:
    def test_raises_provider_error_after_max_retries(self):
        class _AlwaysFail(BaseProvider):
            def _call_api(self, system_prompt: str, user_prompt: str) -> str:
                raise RuntimeError("network error")

        with patch("presubmit_core.providers.base.time.sleep") as sleep:
            with pytest.raises(ProviderError):
                _AlwaysFail().complete("sys", "user")
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]

    def test_retries_on_transient_failure(self):
        call_count = 0

        class _FailOnceThenSucceed(BaseProvider):
            def _call_api(self, system_prompt: str, user_prompt: str) -> str:
                nonlocal call_count
                call_count += 1
                if call_count == 1:
                    raise RuntimeError("transient")
                return VALID_JSON

        with patch("presubmit_core.providers.base.time.sleep"):
            assert _FailOnceThenSucceed().complete("sys", "user") == VALID_JSON
        assert call_count == 2


# ---------------------------------------------------------------------------
# Provider-specific
# ---------------------------------------------------------------------------


class TestAnthropicProvider:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError):
                AnthropicProvider(api_key="key")

    def test_model_is_claude(self):
        assert "claude" in AnthropicProvider.MODEL

    def test_call_api_joins_text_blocks(self):
        from anthropic.types import TextBlock

        provider = AnthropicProvider(api_key="key")
        provider.client = MagicMock()
        provider.client.messages.create.return_value = types.SimpleNamespace(
            content=[TextBlock(type="text", text=VALID_JSON)]
        )
        assert provider.complete("sys", "user") == VALID_JSON
        kwargs = provider.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["temperature"] == AnthropicProvider.TEMPERATURE


class TestOpenAIProvider:
    def test_raises_import_error_without_sdk(self):
        import presubmit_core.providers.openai as openai_mod

        with patch.object(openai_mod, "_OpenAI", None):
            with pytest.raises(ImportError):
                OpenAIProvider(api_key="key")

    def test_model_is_gpt(self):
        assert "gpt" in OpenAIProvider.MODEL

    def test_call_api_requests_json_object(self):
        provider = OpenAIProvider(api_key="key")
        provider.client = MagicMock()
        message = types.SimpleNamespace(content=VALID_JSON)
        provider.client.chat.completions.create.return_value = types.SimpleNamespace(
            choices=[types.SimpleNamespace(message=message)]
        )
        assert provider.complete_json("sys", "user")["comments"]
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
