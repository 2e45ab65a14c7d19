"""Remote execution tier.

Submits a run to the agent service, polls it until it settles and fetches the
resulting report. Every failure mode surfaces as BackendUnavailable so the
selector can downgrade.
"""

from __future__ import annotations

import asyncio
import json
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from ..errors import BackendUnavailable
from ..models.execution import (
    ColumnStatistics,
    ExecutionMethod,
    ExecutionRequest,
    ExecutionResult,
    Visualization,
)


class RemoteExecutionClient:
    name = "remote"
    label = "Remote agent service"

    def __init__(
        self,
        base_url: str,
        poll_interval: float = 2,
        max_attempts: int = 30,
        timeout: float = 10,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.token = token
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def execute(
        self,
        request: ExecutionRequest,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult:
        try:
            async with self._client() as client:
                execution_id = await self._submit(client, request)
                if on_log:
                    on_log(f"API execution started with ID: {execution_id}")
                await self._wait(client, execution_id)
                report = await self._fetch_report(client, execution_id)
            result = parse_report(report, request, execution_id)
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(
                f"Remote service returned {e.response.status_code} for {e.request.url.path}"
            ) from e
        except httpx.HTTPError as e:
            raise BackendUnavailable(f"Remote service unreachable: {e}") from e
        except (ValueError, TypeError, AttributeError) as e:
            # Undecodable JSON and bodies of the wrong shape
            raise BackendUnavailable(f"Malformed response from remote service: {e}") from e

        if on_log:
            on_log("Received AI-generated insights from API")
        return result

    async def _submit(self, client: httpx.AsyncClient, request: ExecutionRequest) -> str:
        options = request.options
        response = await client.post(
            f"/agents/{request.agent.id}/execute",
            json={
                "dataSourceId": request.data_source.id,
                "options": {
                    "provider": options.provider,
                    "model": options.model,
                    "temperature": options.temperature,
                    "apiKey": options.api_key,
                },
            },
        )
        response.raise_for_status()
        data = _json_object(response)
        if not data.get("success") or not data.get("executionId"):
            raise BackendUnavailable(data.get("error") or "API execution failed to start")
        return str(data["executionId"])

    async def _wait(self, client: httpx.AsyncClient, execution_id: str) -> None:
        for _ in range(self.max_attempts):
            await asyncio.sleep(self.poll_interval)

            response = await client.get(f"/executions/{execution_id}")
            response.raise_for_status()
            data = _json_object(response)
            if not data.get("success", True):
                raise BackendUnavailable("Failed to check execution status")

            execution = data.get("execution") or data
            if not isinstance(execution, dict):
                raise BackendUnavailable("Execution status has an unexpected shape")
            status = execution.get("status")
            if status == "completed":
                return
            if status == "error":
                results = execution.get("results")
                error = (results.get("error") if isinstance(results, dict) else None) or execution.get("error")
                raise BackendUnavailable(str(error) if error else "Execution failed")

        raise BackendUnavailable("Execution timed out")

    async def _fetch_report(self, client: httpx.AsyncClient, execution_id: str) -> dict:
        response = await client.get("/reports", params={"executionId": execution_id})
        response.raise_for_status()
        data = _json_object(response)
        reports = data.get("reports") or []
        if not data.get("success") or not isinstance(reports, list) or not reports:
            raise BackendUnavailable("Failed to retrieve report")
        if not isinstance(reports[0], dict):
            raise BackendUnavailable("Report has an unexpected shape")
        return reports[0]


def _json_object(response: httpx.Response) -> dict:
    data = response.json()
    if not isinstance(data, dict):
        raise BackendUnavailable(f"Expected a JSON object from {response.request.url.path}")
    return data


def parse_report(report: dict, request: ExecutionRequest, execution_id: str) -> ExecutionResult:
    """Convert a service report into an ExecutionResult."""
    content = report.get("content", report)
    if isinstance(content, str):
        try:
            content = json.loads(content)
        except ValueError as e:
            raise BackendUnavailable(f"Report content is not valid JSON: {e}") from e
    if not isinstance(content, dict):
        raise BackendUnavailable("Report content has an unexpected shape")

    try:
        visualizations = [
            Visualization.model_validate(v)
            for v in content.get("visualizations") or []
            if isinstance(v, dict)
        ]
        statistics = {
            str(col): ColumnStatistics.model_validate(values)
            for col, values in (content.get("statistics") or {}).items()
            if isinstance(values, dict)
        }
        result = ExecutionResult(
            agent_id=request.agent.id,
            data_source_id=request.data_source.id,
            execution_id=execution_id,
            summary=content.get("summary") or "",
            insights=[str(i) for i in content.get("insights") or []],
            visualizations=visualizations,
            statistics=statistics,
            execution_method=ExecutionMethod.REMOTE,
        )
    except (ValidationError, TypeError, AttributeError) as e:
        raise BackendUnavailable(f"Report content failed validation: {e}") from e

    created_at = report.get("createdAt") or report.get("generatedAt")
    if created_at:
        try:
            result.executed_at = ExecutionResult.model_validate({"executed_at": created_at}).executed_at
        except ValidationError:
            # Unparseable timestamps keep the local receive time.
            pass
    return result
