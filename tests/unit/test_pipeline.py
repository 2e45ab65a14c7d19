"""Tests for core/pipeline.py."""

from __future__ import annotations

import asyncio

import pytest

from agentdash.core.mock import MockBackend
from agentdash.core.pipeline import DEFAULT_STAGES, Stage, StagePipelineRunner, validate_stages
from agentdash.errors import BackendUnavailable
from agentdash.models import ExecutionMethod


class RecordingBackend:
    name = "recording"
    label = "Recording backend"

    def __init__(self, events: list, delay: float = 0, error: Exception | None = None):
        self.events = events
        self.delay = delay
        self.error = error
        self.calls = 0

    async def execute(self, request, on_log=None):
        self.calls += 1
        self.events.append("backend-start")
        await asyncio.sleep(self.delay)
        self.events.append("backend-end")
        if self.error is not None:
            raise self.error
        return await MockBackend().execute(request)


class TestValidateStages:
    def test_default_stages_are_valid(self):
        validate_stages(DEFAULT_STAGES)
        assert [s.progress for s in DEFAULT_STAGES] == [10, 20, 35, 60, 80, 95, 100]
        assert [s.name for s in DEFAULT_STAGES if s.starts_backend] == ["Processing data"]

    def test_rejects_decreasing_weights(self):
        with pytest.raises(ValueError, match="backwards"):
            validate_stages([Stage("a", 0, 50), Stage("b", 0, 40), Stage("c", 0, 100)])

    def test_rejects_final_weight_below_100(self):
        with pytest.raises(ValueError, match="100"):
            validate_stages([Stage("a", 0, 50), Stage("b", 0, 90)])

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            validate_stages([])


class TestStagePipelineRunner:
    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_ends_at_100(self, analyzer, sales_source, request_for):
        events = []
        runner = StagePipelineRunner(MockBackend(), pacing_scale=0)

        result = await runner.run(request_for(analyzer, sales_source), on_progress=events.append)

        values = [e.progress for e in events]
        assert values == sorted(values)
        assert values[0] == 0
        assert values[-1] == 100
        assert events[0].estimated_completion_time is not None
        assert result.success
        assert result.execution_method == ExecutionMethod.MOCK

    @pytest.mark.asyncio
    async def test_custom_schedule_is_monotonic(self, analyzer, sales_source, request_for):
        stages = [
            Stage("One", 0, 25),
            Stage("Two", 0, 25, starts_backend=True),
            Stage("Three", 0, 70),
            Stage("Done", 0, 100),
        ]
        events = []
        runner = StagePipelineRunner(MockBackend(), stages=stages, pacing_scale=0)

        await runner.run(request_for(analyzer, sales_source), on_progress=events.append)

        values = [e.progress for e in events]
        assert values == [0, 25, 25, 70, 100]

    @pytest.mark.asyncio
    async def test_backend_starts_once_at_processing_stage(self, analyzer, sales_source, request_for):
        events: list = []
        backend = RecordingBackend(events)
        runner = StagePipelineRunner(backend, pacing_scale=0)

        await runner.run(
            request_for(analyzer, sales_source),
            on_progress=lambda e: events.append(e.stage),
        )

        assert backend.calls == 1
        assert events.index("backend-start") > events.index("Processing data")
        assert events.index("backend-start") < events.index("Finalizing")

    @pytest.mark.asyncio
    async def test_final_stage_waits_for_slow_backend(self, analyzer, sales_source, request_for):
        events: list = []
        runner = StagePipelineRunner(RecordingBackend(events, delay=0.05), pacing_scale=0)

        await runner.run(
            request_for(analyzer, sales_source),
            on_progress=lambda e: events.append(e.stage),
        )

        assert events.index("backend-end") < events.index("Finalizing")
        assert events[-1] == "Finalizing"

    @pytest.mark.asyncio
    async def test_stage_logs_mention_data_shape(self, analyzer, sales_source, request_for):
        logs: list[str] = []
        runner = StagePipelineRunner(MockBackend(), pacing_scale=0)

        await runner.run(request_for(analyzer, sales_source), on_log=logs.append)

        assert any("5 rows" in line for line in logs)
        assert any("4 columns" in line for line in logs)

    @pytest.mark.asyncio
    async def test_failure_is_returned_not_raised(self, analyzer, sales_source, request_for):
        logs: list[str] = []
        progress: list[int] = []
        backend = RecordingBackend([], error=BackendUnavailable("all tiers down"))
        runner = StagePipelineRunner(backend, pacing_scale=0)

        result = await runner.run(
            request_for(analyzer, sales_source),
            on_progress=lambda e: progress.append(e.progress),
            on_log=logs.append,
        )

        assert result.success is False
        assert result.execution_method == ExecutionMethod.ERROR
        assert "all tiers down" in result.error
        assert logs[-1] == result.error
        assert 100 not in progress
