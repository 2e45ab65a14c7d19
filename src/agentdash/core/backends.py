"""Execution tier selection with silent downgrade.

Tiers are tried in order: remote service, direct AI, local mock. A tier
signals that it cannot serve a request by raising BackendUnavailable; any
other exception is a real failure and propagates.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol

import httpx

from ..errors import BackendUnavailable
from ..models.execution import ExecutionRequest, ExecutionResult
from ..utils.sanitize import sanitize_error
from .analysis import DirectAIBackend
from .mock import MockBackend
from .remote import RemoteExecutionClient


class ExecutionBackend(Protocol):
    name: str
    label: str

    async def execute(
        self,
        request: ExecutionRequest,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult: ...


class ExecutionBackendSelector:
    name = "selector"

    def __init__(
        self,
        remote: Optional[ExecutionBackend],
        direct: Optional[ExecutionBackend],
        mock: ExecutionBackend,
    ):
        self.remote = remote
        self.direct = direct
        self.mock = mock

    @classmethod
    def from_config(
        cls,
        config: dict,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token: Optional[str] = None,
    ) -> ExecutionBackendSelector:
        remote_cfg = config.get("remote", {})
        remote = None
        if remote_cfg.get("enabled", True) and remote_cfg.get("base_url"):
            remote = RemoteExecutionClient(
                base_url=remote_cfg["base_url"],
                poll_interval=remote_cfg.get("poll_interval_seconds", 2),
                max_attempts=remote_cfg.get("max_poll_attempts", 30),
                timeout=remote_cfg.get("timeout_seconds", 10),
                token=token,
                transport=transport,
            )
        analysis = config.get("analysis", {})
        return cls(
            remote=remote,
            direct=DirectAIBackend(config),
            mock=MockBackend(max_chart_rows=analysis.get("max_chart_rows", 10)),
        )

    def tiers(self, request: ExecutionRequest) -> list[ExecutionBackend]:
        chain: list[ExecutionBackend] = []
        if self.remote is not None and not request.options.offline:
            chain.append(self.remote)
        if self.direct is not None:
            chain.append(self.direct)
        chain.append(self.mock)
        return chain

    async def execute(
        self,
        request: ExecutionRequest,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult:
        """Run the request on the first tier that can serve it."""
        log = on_log or (lambda _msg: None)
        chain = self.tiers(request)

        for index, backend in enumerate(chain):
            log(f"Using {backend.label}")
            try:
                return await backend.execute(request, on_log=on_log)
            except BackendUnavailable as e:
                if index == len(chain) - 1:
                    raise
                log(f"{backend.label} unavailable: {sanitize_error(str(e))}")
                log(f"Falling back to {chain[index + 1].label.lower()}")

        raise BackendUnavailable("No execution tier configured")
