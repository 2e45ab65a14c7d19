"""Scrub credentials out of messages before they reach run logs."""

from __future__ import annotations

import os
import re
from typing import Optional


def sanitize_error(message: str) -> str:
    """Sanitize error messages to prevent API key and path leakage."""
    if not message:
        return message

    sanitized = message
    # sk-ant-..., sk-or-v1-..., sk-proj-... and plain sk- keys
    sanitized = re.sub(r"sk-[a-zA-Z0-9_-]{16,}", "[REDACTED_KEY]", sanitized)
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"x-api-key:\s*\S+", "x-api-key: [REDACTED]", sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(r"Authorization:\s*\S+", "Authorization: [REDACTED]", sanitized)
    sanitized = re.sub(r"(\"?apiKey\"?\s*[:=]\s*)\"?[^\s\",}]+\"?", r"\1[REDACTED]", sanitized)

    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and home != "/":
        sanitized = sanitized.replace(home, "[USER_HOME]")

    return sanitized


def mask_key(api_key: Optional[str]) -> str:
    """Short, loggable fingerprint of an API key."""
    if not api_key:
        return "none"
    if len(api_key) <= 8:
        return "****"
    return f"****{api_key[-4:]}"
