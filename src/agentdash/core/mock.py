"""Deterministic mock tier.

Computes everything locally from the rows, so it always produces a result.
"""

from __future__ import annotations

from typing import Callable, Optional

from ..models.execution import ExecutionMethod, ExecutionRequest, ExecutionResult
from .tabular import (
    bar_chart,
    classify_columns,
    compute_frequencies,
    compute_statistics,
    pie_chart,
)


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:,.2f}"


def generate_mock_result(request: ExecutionRequest, max_chart_rows: int = 10) -> ExecutionResult:
    """Build a data-derived result without any external calls."""
    agent = request.agent
    source = request.data_source
    rows = source.rows
    columns = source.columns

    numeric, categorical = classify_columns(rows, columns)
    statistics = compute_statistics(rows, numeric)
    frequencies = {col: compute_frequencies(rows, col) for col in categorical}

    insights: list[str] = [f"Analyzed {len(rows)} rows across {len(columns)} columns"]
    if statistics:
        means = [s.mean for s in statistics.values() if s.mean is not None]
        insights.append(f"Found {len(statistics)} numeric columns for analysis")
        insights.append(f"Average values range from {min(means):.2f} to {max(means):.2f}")
    if categorical and frequencies[categorical[0]]:
        col = categorical[0]
        top, count = next(iter(frequencies[col].items()))
        share = round(count / len(rows) * 100) if rows else 0
        insights.append(f"Most frequent {col}: {top} ({share}% of rows)")

    lines = [f"# Executive Summary: {source.name}", ""]
    if not rows:
        lines.append("The data source contains no rows, so no statistics could be computed.")
    else:
        preview = ", ".join(columns[:3])
        lines.append(
            f"{agent.name} examined a dataset with {len(rows)} rows and {len(columns)} "
            f"columns, covering {preview}{' and other attributes' if len(columns) > 3 else ''}."
        )
        lines.append("")
        lines.append("## Key Observations")
        lines.append("")
        if categorical:
            lines.append(
                f"* The dataset contains {len(categorical)} categorical variables "
                f"including {', '.join(categorical[:2])}"
            )
            top_categories = list(frequencies[categorical[0]].items())[:3]
            if top_categories:
                parts = ", ".join(
                    f"{name} ({round(count / len(rows) * 100)}%)" for name, count in top_categories
                )
                lines.append(f"* Top {categorical[0]} categories: {parts}")
        for col, stats in statistics.items():
            lines.append(
                f"* {col}: mean {_fmt(stats.mean)}, median {_fmt(stats.median)}, "
                f"range {_fmt(stats.min)} to {_fmt(stats.max)}"
            )
        if not statistics:
            lines.append("* No numeric columns were detected")
    summary = "\n".join(lines) + "\n"

    visualizations = []
    if numeric and categorical:
        visualizations.append(bar_chart(rows, categorical[0], numeric[0], limit=max_chart_rows))
    if categorical and frequencies[categorical[0]]:
        visualizations.append(pie_chart(frequencies[categorical[0]], categorical[0]))

    return ExecutionResult(
        success=True,
        agent_id=agent.id,
        data_source_id=source.id,
        summary=summary,
        insights=insights,
        visualizations=visualizations,
        statistics=statistics,
        execution_method=ExecutionMethod.MOCK,
    )


class MockBackend:
    name = "mock"
    label = "Local mock processor"

    def __init__(self, max_chart_rows: int = 10):
        self.max_chart_rows = max_chart_rows

    async def execute(
        self,
        request: ExecutionRequest,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult:
        if on_log:
            on_log("Computing statistics locally")
        return generate_mock_result(request, max_chart_rows=self.max_chart_rows)
