"""Overall progress for collaborative runs.

ProgressAggregator is the only writer of collaborator state. Everything else
reads from it.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Optional

from ..models.execution import CollaboratorState, ProgressEvent

SYNTHESIS_WEIGHT = 20


def calculate_overall_progress(
    states: Iterable[CollaboratorState],
    synthesis_started: bool = False,
    synthesis_progress: int = 0,
) -> int:
    states = list(states)
    completed_weight = sum(100 for s in states if s.completed)
    in_progress_weight = sum(s.progress for s in states if not s.completed)
    synthesis_weight = synthesis_progress * SYNTHESIS_WEIGHT / 100 if synthesis_started else 0
    total_possible = len(states) * 100 + SYNTHESIS_WEIGHT
    overall = (completed_weight + in_progress_weight + synthesis_weight) / total_possible * 100
    return min(100, round(overall))


class ProgressAggregator:
    """Tracks collaborator progress and drives the synthesis phase.

    Synthesis starts exactly once, when every collaborator has completed. From
    then on its progress advances by a fixed increment on a fixed interval
    until it reaches 100, at which point on_synthesis_complete fires.
    """

    def __init__(
        self,
        collaborator_ids: Iterable[str],
        tick_seconds: float = 0.5,
        tick_increment: int = 10,
        on_synthesis_start: Optional[Callable[[], None]] = None,
        on_synthesis_complete: Optional[Callable[[], None]] = None,
        on_update: Optional[Callable[[int], None]] = None,
    ):
        self.states: dict[str, CollaboratorState] = {cid: CollaboratorState() for cid in collaborator_ids}
        self.tick_seconds = tick_seconds
        self.tick_increment = max(1, tick_increment)
        self.on_synthesis_start = on_synthesis_start
        self.on_synthesis_complete = on_synthesis_complete
        self.on_update = on_update
        self.synthesis_started = False
        self.synthesis_progress = 0
        self._synthesis_done = False
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def overall(self) -> int:
        return calculate_overall_progress(
            self.states.values(), self.synthesis_started, self.synthesis_progress
        )

    @property
    def all_completed(self) -> bool:
        return bool(self.states) and all(s.completed for s in self.states.values())

    def record(self, event: ProgressEvent) -> None:
        """Apply a collaborator-tagged progress event."""
        state = self.states.get(event.agent_id or "")
        if state is None or not event.progress:
            return

        state.progress = max(state.progress, event.progress)
        state.stage = event.stage
        if state.progress >= 100:
            state.completed = True

        self._notify()
        if self.all_completed and not self.synthesis_started:
            self._start_synthesis()

    def mark_completed(self, collaborator_id: str) -> None:
        self.record(ProgressEvent(progress=100, stage="Completed", agent_id=collaborator_id))

    def _start_synthesis(self) -> None:
        self.synthesis_started = True
        if self.on_synthesis_start:
            self.on_synthesis_start()
        self._notify()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop to tick on; callers advance synthesis by hand.
            return
        self._tick_task = asyncio.create_task(self._tick())

    async def _tick(self) -> None:
        while self.synthesis_progress < 100:
            await asyncio.sleep(self.tick_seconds)
            self.advance_synthesis()

    def advance_synthesis(self, amount: Optional[int] = None) -> None:
        if not self.synthesis_started or self._synthesis_done:
            return
        self.synthesis_progress = min(100, self.synthesis_progress + (amount or self.tick_increment))
        self._notify()
        if self.synthesis_progress >= 100:
            self._synthesis_done = True
            if self.on_synthesis_complete:
                self.on_synthesis_complete()

    async def wait_synthesis(self) -> None:
        if self._tick_task is not None:
            await self._tick_task

    def cancel(self) -> None:
        if self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()

    def _notify(self) -> None:
        if self.on_update:
            self.on_update(self.overall)
