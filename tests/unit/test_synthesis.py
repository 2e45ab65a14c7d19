"""Tests for core/synthesis.py."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from agentdash.core.synthesis import (
    ResultSynthesizer,
    build_synthesis_prompt,
    combine_without_synthesis,
    merge_results_mechanically,
)
from agentdash.models import (
    ColumnStatistics,
    CompletionResult,
    ExecutionMethod,
    ExecutionOptions,
    ExecutionResult,
    Visualization,
)


def collaborator_result(agent_id: str, insights, titles, stats=None, summary="") -> ExecutionResult:
    return ExecutionResult(
        agent_id=agent_id,
        data_source_id="sales",
        summary=summary,
        insights=insights,
        visualizations=[Visualization(title=t, rows=[{"name": agent_id, "value": 1}]) for t in titles],
        statistics=stats or {},
    )


@pytest.fixture
def two_results() -> list[ExecutionResult]:
    return [
        collaborator_result(
            "analyzer",
            ["a", "b"],
            ["Revenue", "Units"],
            {"revenue": ColumnStatistics(mean=1), "units": ColumnStatistics(mean=2)},
            summary="# Analyzer\n\nFirst summary",
        ),
        collaborator_result(
            "summarizer",
            ["b", "c"],
            ["Revenue", "Regions"],
            {"revenue": ColumnStatistics(mean=99)},
            summary="Second summary",
        ),
    ]


def fake_provider(result: CompletionResult) -> MagicMock:
    provider = MagicMock()
    provider.name = "openai"
    provider.model = "gpt-4-turbo"
    provider.complete_with_retry = AsyncMock(return_value=result)
    return provider


class TestMergeResultsMechanically:
    def test_insights_concatenated_without_dedup(self, two_results):
        merged = merge_results_mechanically(two_results)
        assert merged.insights == ["a", "b", "b", "c"]

    def test_visualizations_deduplicated_by_title_first_wins(self, two_results):
        merged = merge_results_mechanically(two_results)
        assert [v.title for v in merged.visualizations] == ["Revenue", "Units", "Regions"]
        assert merged.visualizations[0].rows[0]["name"] == "analyzer"

    def test_statistics_later_wins(self, two_results):
        merged = merge_results_mechanically(two_results)
        assert merged.statistics["revenue"].mean == 99
        assert merged.statistics["units"].mean == 2

    def test_combined_heading(self, two_results):
        merged = merge_results_mechanically(two_results)
        assert merged.summary.startswith("# Combined Analysis Results\n\n# Analyzer")
        assert "Second summary" in merged.summary
        assert merged.synthesis_strategy == "mechanical"
        assert merged.execution_method == ExecutionMethod.COLLABORATIVE_FALLBACK


class TestCombineWithoutSynthesis:
    def test_first_ten_insights_and_all_visualizations(self):
        results = [
            collaborator_result("a", [f"a{i}" for i in range(8)], ["X"]),
            collaborator_result("b", [f"b{i}" for i in range(8)], ["X"]),
        ]
        combined = combine_without_synthesis(results, total=2)
        assert len(combined.insights) == 10
        assert combined.insights[-1] == "b1"
        assert len(combined.visualizations) == 2
        assert combined.summary == "Results from 2 of 2 collaborator agents"


class TestBuildSynthesisPrompt:
    def test_embeds_each_collaborator(self, two_results):
        prompt = build_synthesis_prompt(two_results)
        assert "Agent 1 (analyzer) Results:" in prompt
        assert "Insights: a; b" in prompt
        assert "Visualizations: Revenue, Units" in prompt
        assert 'Statistics: {"revenue": {"mean": 99.0}}' in prompt
        assert "visualizationRecommendations" in prompt


class TestResultSynthesizer:
    @pytest.mark.asyncio
    async def test_ai_synthesis_pools_visualizations(self, fast_config, team, two_results):
        payload = {"summary": "# Synthesis", "insights": ["joint"], "visualizationRecommendations": ["Revenue"]}
        provider = fake_provider(CompletionResult(success=True, content=json.dumps(payload), model="m"))
        synthesizer = ResultSynthesizer(fast_config, provider_factory=MagicMock(return_value=provider))

        result = await synthesizer.synthesize(team, two_results, ExecutionOptions(api_key="sk-test"))

        assert result.synthesis_strategy == "ai"
        assert result.execution_method == ExecutionMethod.COLLABORATIVE
        assert result.summary == "# Synthesis"
        assert result.insights == ["joint"]
        # Pooled unchanged, duplicates included
        assert [v.title for v in result.visualizations] == ["Revenue", "Units", "Revenue", "Regions"]
        assert result.visualization_recommendations == ["Revenue"]
        assert result.agent_id == "team"
        assert result.collaborator_ids == ["analyzer", "summarizer"]
        assert len(result.collaborator_results) == 2

    @pytest.mark.asyncio
    async def test_no_key_falls_back_to_mechanical(self, fast_config, team, two_results):
        logs: list[str] = []
        synthesizer = ResultSynthesizer(fast_config)

        result = await synthesizer.synthesize(team, two_results, ExecutionOptions(), on_log=logs.append)

        assert result.synthesis_strategy == "mechanical"
        assert "API key required" in result.synthesis_error
        assert result.insights == ["a", "b", "b", "c"]
        assert any("Merging collaborator results mechanically" in line for line in logs)

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back(self, fast_config, team, two_results):
        provider = fake_provider(CompletionResult(success=False, error="500 | upstream"))
        synthesizer = ResultSynthesizer(fast_config, provider_factory=MagicMock(return_value=provider))

        result = await synthesizer.synthesize(team, two_results, ExecutionOptions(api_key="sk-test"))

        assert result.synthesis_strategy == "mechanical"
        assert "500" in result.synthesis_error

    @pytest.mark.asyncio
    async def test_unparseable_response_falls_back(self, fast_config, team, two_results):
        provider = fake_provider(CompletionResult(success=True, content="I could not do it"))
        synthesizer = ResultSynthesizer(fast_config, provider_factory=MagicMock(return_value=provider))

        result = await synthesizer.synthesize(team, two_results, ExecutionOptions(api_key="sk-test"))

        assert result.synthesis_strategy == "mechanical"
        assert "JSON" in result.synthesis_error
