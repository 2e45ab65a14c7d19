"""Error taxonomy for agent execution."""

from __future__ import annotations

from typing import Optional


class AgentDashError(Exception):
    """Base class for all agentdash errors."""


class ConfigurationError(AgentDashError):
    """Missing agent/data source or an unusable agent configuration."""


class BackendUnavailable(AgentDashError):
    """An execution tier cannot serve the request; the caller downgrades."""


class SynthesisError(AgentDashError):
    """AI-assisted synthesis failed; the caller falls back to a mechanical merge."""


class FatalExecutionError(AgentDashError):
    """Unexpected failure that ends a run.

    Carries whatever collaborator results were produced before the failure.
    """

    def __init__(self, message: str, partial_results: Optional[list] = None):
        super().__init__(message)
        self.partial_results = partial_results or []
