"""Collaborative execution of composite agents.

Runs each collaborator through its own staged pipeline, sequentially or in
parallel, feeds their tagged progress into a ProgressAggregator and hands the
results to the synthesizer.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from ..errors import ConfigurationError, FatalExecutionError
from ..models.agent import Agent
from ..models.data_source import DataSource
from ..models.execution import ExecutionOptions, ExecutionResult, ProgressEvent
from ..utils.sanitize import sanitize_error
from .progress import ProgressAggregator
from .synthesis import ResultSynthesizer, combine_without_synthesis

# (collaborator, on_progress, on_log) -> result
CollaboratorRunner = Callable[
    [Agent, Callable[[ProgressEvent], None], Callable[[str], None]],
    Awaitable[ExecutionResult],
]

EXECUTION_MODES = ("sequential", "parallel")


def validate_collaborators(
    agent: Agent,
    collaborators: Sequence[Agent],
    on_log: Optional[Callable[[str], None]] = None,
) -> list[Agent]:
    """Check the resolved collaborator list and apply maxCollaborators."""
    if not collaborators:
        raise ConfigurationError(f"{agent.name} requires at least one collaborator")

    seen: set[str] = set()
    for index, collaborator in enumerate(collaborators):
        if collaborator.id == agent.id:
            raise ConfigurationError(f"{agent.name} cannot collaborate with itself")
        if collaborator.id in seen:
            raise ConfigurationError(
                f"{agent.name} lists collaborator '{collaborator.id}' more than once"
            )
        seen.add(collaborator.id)
        if collaborator.is_composite:
            raise ConfigurationError(
                f"Collaborator {index + 1} ({collaborator.name}) is a {collaborator.kind.value} "
                f"agent; nested composite agents are not supported"
            )

    limit = agent.max_collaborators
    if limit is not None and 0 < limit < len(collaborators):
        if on_log:
            on_log(
                f"Warning: {agent.name} allows at most {limit} collaborators; "
                f"ignoring {', '.join(c.name for c in collaborators[limit:])}"
            )
        return list(collaborators[:limit])
    return list(collaborators)


class CollaborativeCoordinator:
    def __init__(
        self,
        run_collaborator: CollaboratorRunner,
        synthesizer: ResultSynthesizer,
        tick_seconds: float = 0.5,
        tick_increment: int = 10,
    ):
        self.run_collaborator = run_collaborator
        self.synthesizer = synthesizer
        self.tick_seconds = tick_seconds
        self.tick_increment = tick_increment

    async def run(
        self,
        agent: Agent,
        data_source: DataSource,
        collaborators: Sequence[Agent],
        options: ExecutionOptions,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult:
        """Run every collaborator and combine their results.

        Raises FatalExecutionError, carrying the results gathered so far, when a
        collaborator fails. Sequential mode stops at the first failure; parallel
        mode lets the others finish first.
        """
        emit = on_progress or (lambda _event: None)
        log = on_log or (lambda _msg: None)

        collaborators = validate_collaborators(agent, collaborators, log)
        mode = options.execution_mode or agent.execution_mode
        if mode not in EXECUTION_MODES:
            raise ConfigurationError(f"Unknown execution mode: {mode}")
        synthesize = options.synthesize if options.synthesize is not None else agent.synthesize_results

        log(f"Starting collaborative execution of {agent.name}")
        log(f"Execution mode: {mode}")
        log(f"Synthesize results: {'Yes' if synthesize else 'No'}")
        log(f"Collaborators: {', '.join(c.name for c in collaborators)}")
        log(f"Data source: {data_source.name} ({data_source.row_count} rows)")

        def on_update(overall: int) -> None:
            stage = "Synthesizing results" if aggregator.synthesis_started else "Running collaborators"
            emit(ProgressEvent(progress=overall, stage=stage))

        aggregator = ProgressAggregator(
            [c.id for c in collaborators],
            tick_seconds=self.tick_seconds,
            tick_increment=self.tick_increment,
            on_synthesis_start=lambda: log("All collaborators completed"),
            on_update=on_update,
        )

        try:
            if mode == "parallel":
                results = await self._run_parallel(collaborators, aggregator, log)
            else:
                results = await self._run_sequential(collaborators, aggregator, log)

            if synthesize:
                log("Synthesizing results from all collaborators")
                combined = await self.synthesizer.synthesize(agent, results, options, on_log=log)
                await aggregator.wait_synthesis()
            else:
                log("Returning raw collaborator results (no synthesis)")
                combined = combine_without_synthesis(results, len(collaborators))
                combined.collaborator_results = list(results)
                combined.collaborator_ids = [c.id for c in collaborators]
                aggregator.advance_synthesis(100)
        finally:
            aggregator.cancel()

        combined.agent_id = agent.id
        combined.data_source_id = data_source.id
        log(
            f"Combined {len(results)} collaborator results into {len(combined.insights)} insights "
            f"and {len(combined.visualizations)} visualizations"
        )
        return combined

    async def _run_one(
        self,
        collaborator: Agent,
        aggregator: ProgressAggregator,
        log: Callable[[str], None],
    ) -> ExecutionResult:
        def on_progress(event: ProgressEvent) -> None:
            aggregator.record(event.model_copy(update={"agent_id": collaborator.id}))

        def on_log(message: str) -> None:
            log(f"[{collaborator.name}] {message}")

        try:
            result = await self.run_collaborator(collaborator, on_progress, on_log)
        except ConfigurationError:
            raise
        except Exception as e:
            message = f"Execution failed: {sanitize_error(str(e)) or type(e).__name__}"
            on_log(message)
            result = ExecutionResult.failure(message, agent_id=collaborator.id)

        if result.success:
            aggregator.mark_completed(collaborator.id)
        return result

    async def _run_sequential(
        self,
        collaborators: list[Agent],
        aggregator: ProgressAggregator,
        log: Callable[[str], None],
    ) -> list[ExecutionResult]:
        log("Executing collaborator agents sequentially")
        results: list[ExecutionResult] = []
        for index, collaborator in enumerate(collaborators, start=1):
            log(f"Executing collaborator {index}/{len(collaborators)}: {collaborator.name}")
            result = await self._run_one(collaborator, aggregator, log)
            results.append(result)
            if not result.success:
                raise FatalExecutionError(
                    f"Collaborator {collaborator.name} failed: {result.error}",
                    partial_results=results,
                )
        return results

    async def _run_parallel(
        self,
        collaborators: list[Agent],
        aggregator: ProgressAggregator,
        log: Callable[[str], None],
    ) -> list[ExecutionResult]:
        log("Executing all collaborator agents in parallel")
        results = list(
            await asyncio.gather(*(self._run_one(c, aggregator, log) for c in collaborators))
        )
        failed = [
            (c, r) for c, r in zip(collaborators, results) if not r.success
        ]
        if failed:
            names = ", ".join(f"{c.name} ({r.error})" for c, r in failed)
            raise FatalExecutionError(
                f"{len(failed)} of {len(collaborators)} collaborators failed: {names}",
                partial_results=results,
            )
        return results
