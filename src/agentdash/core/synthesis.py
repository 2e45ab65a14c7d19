"""Synthesis of collaborator results into one combined result.

AI-assisted synthesis is tried first; any failure there falls through to a
mechanical merge, so synthesize() always returns a result.
"""

from __future__ import annotations

import json
from typing import Callable, Optional, Sequence

from ..errors import SynthesisError
from ..models.agent import Agent
from ..models.execution import (
    ColumnStatistics,
    ExecutionMethod,
    ExecutionOptions,
    ExecutionResult,
    Visualization,
)
from ..providers.base import BaseProvider, get_ai_provider
from ..utils.sanitize import sanitize_error
from .agents import SYNTHESIS_SYSTEM_PROMPT
from .analysis import Raw, Structured, parse_ai_response

COMBINED_HEADING = "# Combined Analysis Results"
UNSYNTHESIZED_INSIGHT_LIMIT = 10


def build_synthesis_prompt(results: Sequence[ExecutionResult]) -> str:
    """Embed each collaborator's insights, statistics, chart titles and summary."""
    sections = []
    for index, result in enumerate(results, start=1):
        statistics = {
            column: stats.model_dump(exclude_none=True)
            for column, stats in result.statistics.items()
        }
        sections.append(
            f"Agent {index} ({result.agent_id or 'unknown'}) Results:\n"
            f"Insights: {'; '.join(result.insights)}\n"
            f"Statistics: {json.dumps(statistics)}\n"
            f"Visualizations: {', '.join(v.title for v in result.visualizations)}\n"
            f"Summary: {result.summary or 'No summary provided'}\n"
        )

    return (
        "You are tasked with synthesizing analysis results from multiple AI agents that "
        "have analyzed the same dataset.\n"
        "Each agent has provided insights, statistics, and visualizations.\n"
        "Your job is to create a cohesive, comprehensive report that combines these results, "
        "eliminates redundancies, highlights complementary insights, and presents a unified view.\n\n"
        "Here are the results from each agent:\n\n"
        + "\n\n".join(sections)
        + "\n\nPlease synthesize these results into a cohesive report with the following structure:\n"
        "1. Executive Summary\n"
        "2. Key Findings (highlighting the most important insights)\n"
        "3. Statistical Analysis\n"
        "4. Recommendations\n\n"
        "Format your response as a JSON object with:\n"
        "- summary: A markdown-formatted synthesis report\n"
        "- insights: An array of the top synthesized insights\n"
        "- visualizationRecommendations: Suggestions for which visualizations best represent "
        "the combined findings\n"
    )


def pool_visualizations(results: Sequence[ExecutionResult]) -> list[Visualization]:
    return [viz for result in results for viz in result.visualizations]


def merge_statistics(results: Sequence[ExecutionResult]) -> dict[str, ColumnStatistics]:
    # Later collaborators win on column name conflicts.
    merged: dict[str, ColumnStatistics] = {}
    for result in results:
        merged.update(result.statistics)
    return merged


def merge_results_mechanically(results: Sequence[ExecutionResult]) -> ExecutionResult:
    """Combine results without any model call.

    Insights are concatenated as-is. Visualizations are deduplicated by title,
    keeping the first one seen.
    """
    summaries = [r.summary.strip() for r in results if r.summary and r.summary.strip()]
    summary = COMBINED_HEADING + "\n\n"
    summary += "\n\n".join(summaries) if summaries else "The collaborative agent has completed its analysis."

    insights = [insight for r in results for insight in r.insights]

    seen_titles: set[str] = set()
    visualizations: list[Visualization] = []
    for viz in pool_visualizations(results):
        if viz.title in seen_titles:
            continue
        seen_titles.add(viz.title)
        visualizations.append(viz)

    return ExecutionResult(
        summary=summary,
        insights=insights,
        visualizations=visualizations,
        statistics=merge_statistics(results),
        execution_method=ExecutionMethod.COLLABORATIVE_FALLBACK,
        synthesis_strategy="mechanical",
    )


def combine_without_synthesis(results: Sequence[ExecutionResult], total: int) -> ExecutionResult:
    """Used when the agent turns synthesis off."""
    return ExecutionResult(
        summary=f"Results from {len(results)} of {total} collaborator agents",
        insights=[i for r in results for i in r.insights][:UNSYNTHESIZED_INSIGHT_LIMIT],
        visualizations=pool_visualizations(results),
        statistics=merge_statistics(results),
        execution_method=ExecutionMethod.COLLABORATIVE,
    )


class ResultSynthesizer:
    def __init__(
        self,
        config: dict,
        provider_factory: Callable[..., BaseProvider] = get_ai_provider,
    ):
        self.config = config
        self.provider_factory = provider_factory

    async def synthesize(
        self,
        agent: Agent,
        results: Sequence[ExecutionResult],
        options: ExecutionOptions,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult:
        """Never raises; the returned result records the strategy used."""
        log = on_log or (lambda _msg: None)
        try:
            combined = await self._synthesize_with_ai(results, options, log)
        except SynthesisError as e:
            reason = sanitize_error(str(e))
            log(f"AI synthesis unavailable: {reason}")
            log("Merging collaborator results mechanically")
            combined = merge_results_mechanically(results)
            combined.synthesis_error = reason

        combined.agent_id = agent.id
        combined.collaborator_results = list(results)
        combined.collaborator_ids = [r.agent_id for r in results if r.agent_id]
        if results:
            combined.data_source_id = results[0].data_source_id
        return combined

    async def _synthesize_with_ai(
        self,
        results: Sequence[ExecutionResult],
        options: ExecutionOptions,
        log: Callable[[str], None],
    ) -> ExecutionResult:
        if not options.api_key:
            raise SynthesisError("API key required for result synthesis")

        usable = [r for r in results if r.insights or r.summary.strip() or r.visualizations]
        if not usable:
            raise SynthesisError("No valid data found in any collaborator results")

        try:
            provider = self.provider_factory(
                self.config,
                provider_override=options.provider,
                model_override=options.model,
                api_key=options.api_key,
            )
        except ValueError as e:
            raise SynthesisError(str(e)) from e

        log("Using AI to synthesize collaborator results")
        completion = await provider.complete_with_retry(
            system_prompt=SYNTHESIS_SYSTEM_PROMPT,
            user_prompt=build_synthesis_prompt(usable),
            temperature=options.temperature,
        )
        if not completion.success:
            raise SynthesisError(completion.error or "Failed to synthesize results")

        match parse_ai_response(completion.content or ""):
            case Structured(payload=payload):
                pass
            case Raw():
                raise SynthesisError("Synthesis response was not a JSON object")

        insights = payload.get("insights") or []
        if not isinstance(insights, list):
            insights = [insights]

        return ExecutionResult(
            summary=str(payload.get("summary") or "No synthesis summary available"),
            insights=[str(i) for i in insights],
            visualizations=pool_visualizations(results),
            statistics=merge_statistics(results),
            execution_method=ExecutionMethod.COLLABORATIVE,
            synthesis_strategy="ai",
            visualization_recommendations=payload.get("visualizationRecommendations"),
            ai_metadata={"provider": provider.name, "model": completion.model or provider.model},
        )
