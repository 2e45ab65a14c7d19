"""AI provider abstraction with retry logic.

Providers receive their API key explicitly at construction time; nothing
here reads process-wide state. Subclasses describe the wire format through
_build_request() and _parse_response(); the HTTP round trip, error mapping
and retries live here.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from ..models.provider import CompletionResult
from ..utils.sanitize import sanitize_error

KNOWN_PROVIDERS = ("openai", "openrouter", "anthropic")

RETRYABLE_MARKERS = ("500", "502", "503", "504", "timeout", "timed out")
FATAL_MARKERS = ("400", "401", "403", "404")


class BaseProvider:
    """Base class with shared HTTP handling, retry logic and config handling."""

    name: str = "base"
    default_model: str = ""
    api_url: str = ""

    def __init__(
        self,
        provider_config: dict,
        common_config: dict,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = provider_config
        self.common = common_config
        self.api_key = api_key
        self.transport = transport
        self.max_attempts = common_config.get("retry_attempts", 3)
        self.retry_delay = common_config.get("retry_delay_seconds", 5)

    @property
    def model(self) -> str:
        return self.config.get("model") or self.default_model

    @property
    def endpoint(self) -> str:
        return self.config.get("endpoint") or self.api_url

    def _settings(self, temperature: Optional[float], max_tokens: int) -> tuple[float, int, float]:
        temp = temperature if temperature is not None else self.common.get("temperature", 0.2)
        max_tok = max_tokens or self.config.get("max_tokens") or self.common.get("max_tokens", 4000)
        timeout = self.common.get("timeout_seconds", 120)
        return temp, max_tok, timeout

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _build_request(
        self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int
    ) -> dict[str, Any]:
        raise NotImplementedError

    def _parse_response(self, data: dict) -> tuple[Optional[str], dict[str, int]]:
        """Return (content, {"input": n, "output": n}) from a response body."""
        raise NotImplementedError

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: int = 0,
    ) -> CompletionResult:
        """One completion call. Failures come back as success=False, never raised."""
        if not self.api_key:
            return CompletionResult(
                success=False,
                error=f"API key not configured for provider: {self.name}",
            )

        temp, max_tok, timeout = self._settings(temperature, max_tokens)
        body = self._build_request(system_prompt, user_prompt, temp, max_tok)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await client.post(self.endpoint, json=body, headers=self._headers())
                response.raise_for_status()
                data = response.json()
            content, tokens = self._parse_response(data)
        except httpx.HTTPStatusError as e:
            return CompletionResult(
                success=False,
                error=f"{e.response.status_code} | {e.response.text}",
            )
        except httpx.TimeoutException as e:
            return CompletionResult(success=False, error=f"Request timed out: {e}")
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            return CompletionResult(success=False, error=str(e) or type(e).__name__)

        return CompletionResult(
            success=True,
            content=content,
            model=data.get("model", self.model),
            tokens_used=tokens,
        )

    async def complete_with_retry(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: int = 0,
    ) -> CompletionResult:
        """Wrap complete() with retry logic including rate-limit handling."""
        rate_limit_max = max(self.max_attempts, 5)
        last_result: Optional[CompletionResult] = None

        for attempt in range(1, rate_limit_max + 1):
            result = await self.complete(system_prompt, user_prompt, temperature, max_tokens)
            last_result = result

            if result.success:
                return result

            error_msg = result.error or ""
            is_rate_limit = "429" in error_msg
            is_retryable = (
                is_rate_limit or any(marker in error_msg for marker in RETRYABLE_MARKERS)
            ) and not any(marker in error_msg for marker in FATAL_MARKERS)

            effective_max = rate_limit_max if is_rate_limit else self.max_attempts
            if not is_retryable or attempt >= effective_max:
                result.error = sanitize_error(error_msg)
                return result

            # Rate limits: 30s base. Others: standard backoff.
            base_delay = 30 if is_rate_limit else self.retry_delay
            await asyncio.sleep(base_delay * min(attempt, 3))

        return last_result or CompletionResult(success=False, error="Max retries exceeded")


def get_ai_provider(
    config: dict,
    provider_override: Optional[str] = None,
    model_override: Optional[str] = None,
    api_key: Optional[str] = None,
) -> BaseProvider:
    """Factory function to create the configured AI provider."""
    ai_config = config.get("ai", {})
    provider_name = provider_override or ai_config.get("provider", "openai")

    provider_config = dict(ai_config.get(provider_name, {}))
    if model_override:
        provider_config["model"] = model_override

    # Common config is the ai section minus provider sub-configs
    common_config = {k: v for k, v in ai_config.items() if k not in KNOWN_PROVIDERS}

    if provider_name == "openai":
        from .openai_provider import OpenAIProvider
        return OpenAIProvider(provider_config, common_config, api_key=api_key)
    elif provider_name == "openrouter":
        from .openrouter import OpenRouterProvider
        return OpenRouterProvider(provider_config, common_config, api_key=api_key)
    elif provider_name == "anthropic":
        from .anthropic import AnthropicProvider
        return AnthropicProvider(provider_config, common_config, api_key=api_key)
    else:
        raise ValueError(f"Unknown AI provider: {provider_name}")
