"""Tests for providers/."""

from __future__ import annotations

import json

import httpx
import pytest

from agentdash.models.provider import CompletionResult
from agentdash.providers.base import BaseProvider, get_ai_provider


def provider_with(handler, provider: str = "openai", api_key: str = "sk-test") -> BaseProvider:
    instance = get_ai_provider({"ai": {"provider": provider}}, api_key=api_key)
    instance.transport = httpx.MockTransport(handler)
    return instance


class TestGetAIProvider:
    def test_openai_provider(self):
        provider = get_ai_provider({"ai": {"provider": "openai"}}, api_key="k")
        assert provider.name == "openai"
        assert provider.model == "gpt-4-turbo"

    def test_openrouter_provider(self):
        provider = get_ai_provider({"ai": {"provider": "openrouter"}})
        assert provider.name == "openrouter"
        assert provider.model == "anthropic/claude-3-haiku"

    def test_anthropic_provider(self):
        provider = get_ai_provider({"ai": {"provider": "anthropic"}})
        assert provider.name == "anthropic"

    def test_invalid_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown"):
            get_ai_provider({"ai": {"provider": "invalid"}})

    def test_provider_and_model_override(self):
        config = {"ai": {"provider": "anthropic", "openai": {"model": "gpt-4o"}}}
        provider = get_ai_provider(config, provider_override="openai", model_override="gpt-4o-mini")
        assert provider.name == "openai"
        assert provider.model == "gpt-4o-mini"

    def test_key_is_passed_explicitly(self):
        first = get_ai_provider({"ai": {}}, api_key="key-one")
        second = get_ai_provider({"ai": {}}, api_key="key-two")
        assert first.api_key == "key-one"
        assert second.api_key == "key-two"


class TestBaseProviderRetry:
    @pytest.mark.asyncio
    async def test_retry_on_failure(self):
        provider = BaseProvider(
            provider_config={},
            common_config={"retry_attempts": 3, "retry_delay_seconds": 0},
        )
        call_count = 0

        async def mock_complete(*args, **kwargs):
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                return CompletionResult(success=False, error="500 Internal Server Error")
            return CompletionResult(success=True, content="ok")

        provider.complete = mock_complete

        result = await provider.complete_with_retry(system_prompt="s", user_prompt="u")
        assert result.success
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_no_retry_on_auth_error(self):
        provider = BaseProvider(
            provider_config={},
            common_config={"retry_attempts": 3, "retry_delay_seconds": 0},
        )
        call_count = 0

        async def mock_complete(*args, **kwargs):
            nonlocal call_count
            call_count += 1
            return CompletionResult(success=False, error="401 Unauthorized")

        provider.complete = mock_complete

        result = await provider.complete_with_retry(system_prompt="s", user_prompt="u")
        assert not result.success
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_error_is_sanitized(self):
        provider = BaseProvider(provider_config={}, common_config={"retry_attempts": 1})

        async def mock_complete(*args, **kwargs):
            return CompletionResult(
                success=False, error="400 | invalid key sk-abcdefghijklmnopqrstuvwxyz"
            )

        provider.complete = mock_complete

        result = await provider.complete_with_retry(system_prompt="s", user_prompt="u")
        assert "sk-abcdefghijklmnop" not in result.error
        assert "[REDACTED_KEY]" in result.error


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_missing_key(self):
        provider = get_ai_provider({"ai": {"provider": "openai"}})
        result = await provider.complete("system", "user")
        assert not result.success
        assert "API key not configured" in result.error

    @pytest.mark.asyncio
    async def test_successful_completion(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "gpt-4-turbo-2024",
                    "choices": [{"message": {"content": '{"summary": "ok"}'}}],
                    "usage": {"prompt_tokens": 12, "completion_tokens": 3},
                },
            )

        result = await provider_with(handler).complete("system", "user", temperature=0.5)

        assert result.success
        assert result.content == '{"summary": "ok"}'
        assert result.model == "gpt-4-turbo-2024"
        assert result.tokens_used == {"input": 12, "output": 3}
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["temperature"] == 0.5
        assert seen["body"]["messages"][0] == {"role": "system", "content": "system"}

    @pytest.mark.asyncio
    async def test_http_error_becomes_failed_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, text="rate limited")

        result = await provider_with(handler).complete("system", "user")

        assert not result.success
        assert result.error.startswith("429")

    @pytest.mark.asyncio
    async def test_malformed_body_becomes_failed_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        result = await provider_with(handler).complete("system", "user")

        assert not result.success

    @pytest.mark.asyncio
    async def test_network_error_becomes_failed_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await provider_with(handler).complete("system", "user")

        assert not result.success
        assert "connection refused" in result.error


class TestOpenRouterProvider:
    def test_attribution_headers(self):
        provider = get_ai_provider({"ai": {"provider": "openrouter"}}, api_key="or-key")
        headers = provider._headers()
        assert headers["Authorization"] == "Bearer or-key"
        assert "HTTP-Referer" in headers
        assert "X-Title" in headers

    @pytest.mark.asyncio
    async def test_posts_to_openrouter(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

        result = await provider_with(handler, provider="openrouter").complete("s", "u")

        assert result.success
        assert result.model == "anthropic/claude-3-haiku"
        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"


class TestAnthropicProvider:
    @pytest.mark.asyncio
    async def test_system_prompt_is_top_level(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers["x-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "claude-3-5-haiku-latest",
                    "content": [{"type": "text", "text": "answer"}],
                    "usage": {"input_tokens": 7, "output_tokens": 2},
                },
            )

        result = await provider_with(handler, provider="anthropic", api_key="ant-key").complete("system", "user")

        assert result.success
        assert result.content == "answer"
        assert result.tokens_used == {"input": 7, "output": 2}
        assert seen["key"] == "ant-key"
        assert seen["body"]["system"] == "system"
        assert seen["body"]["messages"] == [{"role": "user", "content": "user"}]
