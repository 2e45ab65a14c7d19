"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any, Optional

from .base import BaseProvider

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    name = "anthropic"
    default_model = "claude-3-5-haiku-latest"
    api_url = "https://api.anthropic.com/v1/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def _build_request(
        self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int
    ) -> dict[str, Any]:
        # System prompt is a top-level field, not a message.
        return {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }

    def _parse_response(self, data: dict) -> tuple[Optional[str], dict[str, int]]:
        text_blocks = [b.get("text") for b in data.get("content", []) if b.get("type") == "text"]
        usage = data.get("usage") or {}
        return (text_blocks[0] if text_blocks else None), {
            "input": usage.get("input_tokens", 0),
            "output": usage.get("output_tokens", 0),
        }
