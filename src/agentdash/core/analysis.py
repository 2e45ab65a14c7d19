"""Direct AI-assisted analysis tier.

Turns a data source into a bounded prompt, calls the configured provider once
and normalizes whatever comes back into an ExecutionResult.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from ..errors import BackendUnavailable
from ..models.data_source import DataSource
from ..models.execution import (
    ColumnStatistics,
    ExecutionMethod,
    ExecutionRequest,
    ExecutionResult,
    Visualization,
)
from ..providers.base import BaseProvider, get_ai_provider
from .agents import get_system_prompt
from .tabular import DEFAULT_SERIES_COLOR, bar_chart, classify_columns, is_empty, to_number


@dataclass(frozen=True)
class Structured:
    """A response that parsed into a JSON object."""

    payload: dict


@dataclass(frozen=True)
class Raw:
    """A response that could not be parsed; kept as plain text."""

    text: str


AIResponse = Union[Structured, Raw]

FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
MARKDOWN_TABLE = re.compile(
    r"^\|(?P<header>[^\n]+)\|[ \t]*\n"
    r"^\|(?:[ \t]*:?-+:?[ \t]*\|){2,}[ \t]*\n"
    r"(?P<body>(?:^\|[^\n]*\|[ \t]*(?:\n|$))+)",
    re.MULTILINE,
)


def build_data_context(source: DataSource, max_rows: int = 20) -> str:
    """Schema header plus a capped, tab-separated row sample."""
    rows, columns = source.rows, source.columns
    if not rows or not columns:
        return "No data available for analysis."

    header = (
        f"Dataset with {len(rows)} rows and {len(columns)} columns "
        f"({', '.join(columns)}).\n\n"
    )
    lines = ["\t".join(columns)]
    for row in rows[:max_rows]:
        lines.append("\t".join("" if is_empty(row.get(c)) else str(row.get(c)) for c in columns))
    return f"{header}" + "\n".join(lines) + "\n\nPlease analyze this data based on the instructions."


def _load_object(text: str) -> Optional[dict]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_ai_response(content: str) -> AIResponse:
    """JSON first, then a fenced code block, else raw text."""
    payload = _load_object(content)
    if payload is not None:
        return Structured(payload)

    match = FENCED_BLOCK.search(content or "")
    if match:
        payload = _load_object(match.group(1))
        if payload is not None:
            return Structured(payload)

    return Raw(content or "")


def _split_cells(line: str) -> list[str]:
    return [cell.strip() for cell in line.strip().strip("|").split("|")]


def extract_markdown_tables(text: str) -> list[Visualization]:
    """Best-effort conversion of markdown tables into bar charts."""
    visualizations: list[Visualization] = []
    for index, table in enumerate(MARKDOWN_TABLE.finditer(text), start=1):
        headers = _split_cells(table.group("header"))
        data = []
        for line in table.group("body").strip().splitlines():
            cells = [c for c in _split_cells(line) if c]
            if not cells:
                continue
            raw_value = cells[1] if len(cells) > 1 else ""
            number = to_number(raw_value)
            data.append({"name": cells[0], "value": number if number is not None else raw_value})
        if data:
            visualizations.append(
                Visualization(
                    kind="bar",
                    title=f"Table Data {index}",
                    rows=data,
                    config={
                        "xAxisKey": "name",
                        "valueKey": "value",
                        "series": [{
                            "dataKey": "value",
                            "name": headers[1] if len(headers) > 1 else "Value",
                            "color": DEFAULT_SERIES_COLOR,
                        }],
                    },
                )
            )
    return visualizations


def format_summary(summary: str) -> str:
    """Give plain-text summaries a markdown shape."""
    text = summary.strip()
    if not text:
        return ""

    if any(marker in text for marker in ("#", "*", "- ")):
        if text.startswith("#"):
            return text
        title = text.splitlines()[0]
        return f"# {title}\n\n{text}"

    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    parts = [f"# {paragraphs[0]}"]
    for para in paragraphs[1:]:
        if len(para) < 50 and "." not in para:
            parts.append(f"## {para}")
        elif para.count(",") > 2:
            parts.append("\n".join(f"* {item.strip()}" for item in para.split(",") if item.strip()))
        else:
            parts.append(para)

    lowered = text.lower()
    if "conclusion" not in lowered and "summary" not in lowered:
        parts.append(
            "## Conclusion\n\nThe above analysis provides key insights into the data "
            "patterns. Consider these findings when making decisions based on this dataset."
        )
    return "\n\n".join(parts) + "\n"


def _column_rows(source: DataSource, x_column: str, y_column: str, limit: int) -> list[dict]:
    return [
        {"name": str(row.get(x_column) or ""), "value": to_number(row.get(y_column)) or 0}
        for row in source.rows[:limit]
    ]


def _default_columns(source: DataSource) -> tuple[str, str]:
    columns = source.columns
    first = columns[0] if columns else "name"
    second = columns[1] if len(columns) > 1 else first
    return first, second


def normalize_visualization(item: Any, source: DataSource, limit: int = 10) -> Optional[Visualization]:
    if not isinstance(item, dict):
        return None

    config = dict(item.get("config") or {})
    if item.get("type") and isinstance(item.get("data"), list):
        config.setdefault("xAxisKey", "name")
        config.setdefault("valueKey", "value")
        if not config.get("series") and config.get("dataKey"):
            config["series"] = [{
                "dataKey": config["dataKey"],
                "name": config.get("name") or config["dataKey"],
                "color": config.get("color") or DEFAULT_SERIES_COLOR,
            }]
        return Visualization(
            kind=item["type"],
            title=item.get("title") or "Data Visualization",
            rows=[r for r in item["data"] if isinstance(r, dict)],
            config=config,
        )

    x_default, y_default = _default_columns(source)
    x_column = item.get("xAxis") or x_default
    y_column = item.get("yAxis") or y_default
    data = item.get("data")
    if not isinstance(data, list):
        data = _column_rows(source, x_column, y_column, limit)
    if not config:
        config = {
            "xAxisKey": "name",
            "valueKey": "value",
            "series": [{
                "dataKey": "value",
                "name": item.get("name") or y_column,
                "color": item.get("color") or DEFAULT_SERIES_COLOR,
            }],
        }
    else:
        config.setdefault("xAxisKey", "name")
        config.setdefault("valueKey", "value")
    return Visualization(
        kind=item.get("chartType") or item.get("type") or "bar",
        title=item.get("title") or "Data Visualization",
        rows=[r for r in data if isinstance(r, dict)],
        config=config,
    )


def _normalize_statistics(raw: Any) -> dict[str, ColumnStatistics]:
    stats: dict[str, ColumnStatistics] = {}
    if not isinstance(raw, dict):
        return stats
    for column, values in raw.items():
        if not isinstance(values, dict):
            continue
        try:
            stats[str(column)] = ColumnStatistics.model_validate(values)
        except ValidationError:
            continue
    return stats


def auto_visualization(source: DataSource, limit: int = 10) -> Optional[Visualization]:
    """Last-resort chart from the first categorical/numeric pair in a small sample."""
    numeric, categorical = classify_columns(source.rows[:5], source.columns)
    if not numeric or not categorical:
        return None
    return bar_chart(source.rows, categorical[0], numeric[0], limit=limit)


def normalize_ai_result(
    response: AIResponse,
    request: ExecutionRequest,
    max_chart_rows: int = 10,
) -> ExecutionResult:
    """Map a parsed provider response onto the canonical result shape."""
    source = request.data_source
    result = ExecutionResult(
        agent_id=request.agent.id,
        data_source_id=source.id,
        execution_method=ExecutionMethod.DIRECT_AI,
    )

    match response:
        case Raw(text=text):
            result.summary = text
            result.insights = ["Analysis completed but could not be properly structured"]
            result.visualizations = extract_markdown_tables(text)
            return result
        case Structured(payload=payload):
            pass

    if isinstance(payload.get("summary"), str):
        result.summary = format_summary(payload["summary"])

    insights = payload.get("insights")
    if isinstance(insights, list):
        result.insights = [str(i) for i in insights]
    elif insights:
        result.insights = [str(insights)]

    result.statistics = _normalize_statistics(payload.get("statistics"))

    raw_visualizations = payload.get("visualizations")
    if isinstance(raw_visualizations, list):
        result.visualizations = [
            viz
            for viz in (normalize_visualization(v, source, max_chart_rows) for v in raw_visualizations)
            if viz is not None
        ]
    elif isinstance(raw_visualizations, dict):
        result.visualization_recommendations = raw_visualizations
        charts = raw_visualizations.get("charts") or []
        result.visualizations = [
            viz
            for viz in (normalize_visualization(
                {k: v for k, v in chart.items() if k != "data"} if isinstance(chart, dict) else chart,
                source,
                15,
            ) for chart in charts[:3])
            if viz is not None
        ]

    if not result.visualizations:
        fallback = auto_visualization(source, max_chart_rows)
        if fallback is not None:
            result.visualizations.append(fallback)

    return result


class DirectAIBackend:
    name = "direct-ai"
    label = "Direct AI analysis"

    def __init__(
        self,
        config: dict,
        provider_factory: Callable[..., BaseProvider] = get_ai_provider,
    ):
        self.config = config
        self.provider_factory = provider_factory
        analysis = config.get("analysis", {})
        self.max_sample_rows = analysis.get("max_sample_rows", 20)
        self.max_chart_rows = analysis.get("max_chart_rows", 10)

    async def execute(
        self,
        request: ExecutionRequest,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> ExecutionResult:
        options = request.options
        if not options.api_key:
            raise BackendUnavailable(f"No API key configured for provider '{options.provider}'")

        try:
            provider = self.provider_factory(
                self.config,
                provider_override=options.provider,
                model_override=options.model,
                api_key=options.api_key,
            )
        except ValueError as e:
            raise BackendUnavailable(str(e)) from e

        if on_log:
            on_log(f"Sending data to {provider.name} ({provider.model}) for analysis")

        completion = await provider.complete_with_retry(
            system_prompt=get_system_prompt(request.agent.kind),
            user_prompt=build_data_context(request.data_source, self.max_sample_rows),
            temperature=options.temperature,
        )
        if not completion.success:
            raise BackendUnavailable(f"Error using {provider.name}: {completion.error}")

        response = parse_ai_response(completion.content or "")
        if on_log and isinstance(response, Raw):
            on_log("AI response was not valid JSON; using it as an unstructured summary")

        try:
            result = normalize_ai_result(response, request, self.max_chart_rows)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise BackendUnavailable(f"Could not normalize AI response: {e}") from e

        result.ai_metadata = {
            "provider": provider.name,
            "model": completion.model or provider.model,
            "usage": completion.tokens_used,
        }
        if on_log:
            on_log("Received AI-generated insights")
        return result
