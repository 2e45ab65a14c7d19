"""Staged single-agent execution.

The stage schedule is a pacing device for the progress display: it advances on
its own clock while the backend call runs concurrently, and the final stage is
only reported once both have settled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from ..models.execution import ExecutionRequest, ExecutionResult, ProgressEvent
from ..utils.sanitize import sanitize_error
from .backends import ExecutionBackend


@dataclass(frozen=True)
class Stage:
    name: str
    duration: float
    progress: int
    message: str = ""
    starts_backend: bool = False


DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage("Initializing", 0.5, 10, "Initializing {agent} ({kind} agent)"),
    Stage("Loading data", 0.8, 20, "Loading data source: {source} with {rows} rows"),
    Stage("Analyzing data structure", 0.7, 35, "Identified {columns} columns for analysis"),
    Stage("Processing data", 1.5, 60, "Processing data", starts_backend=True),
    Stage("Generating insights", 1.2, 80, "Generating insights"),
    Stage("Creating visualizations", 1.0, 95, "Creating visualizations"),
    Stage("Finalizing", 0.3, 100, "Finalizing results"),
)


def validate_stages(stages: Sequence[Stage]) -> None:
    """Raise ValueError unless weights are non-decreasing and end at 100."""
    if not stages:
        raise ValueError("A stage schedule needs at least one stage")
    previous = 0
    for stage in stages:
        if stage.duration < 0:
            raise ValueError(f"Stage '{stage.name}' has a negative duration")
        if stage.progress < previous:
            raise ValueError(
                f"Stage '{stage.name}' moves progress backwards ({previous} -> {stage.progress})"
            )
        previous = stage.progress
    if stages[-1].progress != 100:
        raise ValueError("The final stage must reach 100")
    if sum(1 for s in stages if s.starts_backend) > 1:
        raise ValueError("Only one stage may start the backend call")


class StagePipelineRunner:
    def __init__(
        self,
        backend: ExecutionBackend,
        stages: Sequence[Stage] = DEFAULT_STAGES,
        pacing_scale: float = 1.0,
    ):
        validate_stages(stages)
        self.backend = backend
        self.stages = tuple(stages)
        self.pacing_scale = pacing_scale

    def estimated_duration(self) -> float:
        return sum(stage.duration for stage in self.stages) * self.pacing_scale

    async def run(
        self,
        request: ExecutionRequest,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult:
        """Play the stage schedule around one backend call. Never raises."""
        emit = on_progress or (lambda _event: None)
        log = on_log or (lambda _msg: None)
        agent = request.agent
        source = request.data_source
        context = {
            "agent": agent.name,
            "kind": agent.kind.value,
            "source": source.name,
            "rows": source.row_count,
            "columns": source.column_count,
        }

        backend_task: Optional[asyncio.Task] = None
        try:
            eta = datetime.now() + timedelta(seconds=self.estimated_duration())
            emit(ProgressEvent(progress=0, stage="Starting", estimated_completion_time=eta))

            *paced, final = self.stages
            for stage in paced:
                emit(ProgressEvent(progress=stage.progress, stage=stage.name))
                if stage.message:
                    log(stage.message.format(**context))
                if stage.starts_backend and backend_task is None:
                    backend_task = asyncio.create_task(self.backend.execute(request, on_log=log))
                await asyncio.sleep(stage.duration * self.pacing_scale)

            if backend_task is None:
                backend_task = asyncio.create_task(self.backend.execute(request, on_log=log))
            result = await backend_task

            emit(ProgressEvent(progress=final.progress, stage=final.name))
            if final.message:
                log(final.message.format(**context))
            return result
        except Exception as e:
            if backend_task is not None and not backend_task.done():
                backend_task.cancel()
            message = f"Execution failed: {sanitize_error(str(e)) or type(e).__name__}"
            log(message)
            return ExecutionResult.failure(
                message,
                agent_id=agent.id,
                data_source_id=source.id,
            )
