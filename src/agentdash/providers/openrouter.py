"""OpenRouter provider (OpenAI-compatible chat completions)."""

from __future__ import annotations

from .openai_provider import OpenAIProvider


class OpenRouterProvider(OpenAIProvider):
    name = "openrouter"
    default_model = "anthropic/claude-3-haiku"
    api_url = "https://openrouter.ai/api/v1/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["HTTP-Referer"] = self.config.get("referer", "https://agentdash.local")
        headers["X-Title"] = self.config.get("title", "Agent Dashboard")
        return headers
