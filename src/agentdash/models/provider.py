"""Result of one AI completion call."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class CompletionResult(BaseModel):
    """Providers return failures as success=False with an error string; they never raise."""

    success: bool
    content: Optional[str] = None
    model: Optional[str] = None
    # {"input": n, "output": n}
    tokens_used: Optional[dict[str, int]] = None
    error: Optional[str] = None
