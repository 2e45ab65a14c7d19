"""Report records built from execution results."""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path

from ..models.agent import Agent, AgentKind
from ..models.data_source import DataSource
from ..models.execution import ExecutionResult
from ..models.report import Report
from .tabular import generate_charts

CHART_CAPABILITIES = frozenset({"chart-generation", "data-visualization"})


def draws_charts(agent: Agent) -> bool:
    return agent.kind == AgentKind.VISUALIZER or bool(CHART_CAPABILITIES.intersection(agent.capabilities))


def build_report(agent: Agent, data_source: DataSource, result: ExecutionResult) -> Report:
    generated_at = datetime.now()
    visualizations = list(result.visualizations)
    if not visualizations and draws_charts(agent):
        visualizations = generate_charts(data_source.rows, data_source.columns)
    return Report(
        id=uuid.uuid4().hex,
        name=f"{agent.name} Analysis - {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        description=f"Report generated by {agent.name} on {data_source.name}",
        agent_id=agent.id,
        data_source_id=data_source.id,
        summary=result.summary,
        insights=list(result.insights),
        visualizations=visualizations,
        statistics=dict(result.statistics),
        generated_at=generated_at,
        execution_method=result.execution_method,
    )


def export_report_json(report: Report, output_path: Path) -> Path:
    """Write a report as camelCase JSON (UTF-8, no BOM)."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        report.model_dump_json(by_alias=True, exclude_none=True, indent=2),
        encoding="utf-8",
    )
    return output_path


def _fmt(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


def render_report_markdown(report: Report) -> str:
    lines: list[str] = []
    lines.append(f"# {report.name}")
    lines.append("")
    if report.description:
        lines.append(f"_{report.description}_")
        lines.append("")
    lines.append(f"**Generated:** {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"**Execution method:** {report.execution_method.value}")
    lines.append("")

    if report.summary:
        lines.append(report.summary.strip())
        lines.append("")

    if report.insights:
        lines.append("## Insights")
        lines.append("")
        for insight in report.insights:
            lines.append(f"- {insight}")
        lines.append("")

    if report.statistics:
        lines.append("## Statistics")
        lines.append("")
        lines.append("| Column | Mean | Median | Min | Max | Count |")
        lines.append("|--------|------|--------|-----|-----|-------|")
        for column, stats in report.statistics.items():
            lines.append(
                f"| {column} | {_fmt(stats.mean)} | {_fmt(stats.median)} | "
                f"{_fmt(stats.min)} | {_fmt(stats.max)} | {_fmt(stats.count)} |"
            )
        lines.append("")

    if report.visualizations:
        lines.append("## Visualizations")
        lines.append("")
        for viz in report.visualizations:
            lines.append(f"- **{viz.title}** ({viz.kind}, {len(viz.rows)} points)")
        lines.append("")

    return "\n".join(lines)
