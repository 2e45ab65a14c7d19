"""Column typing, descriptive statistics and chart builders for row records."""

from __future__ import annotations

import math
import re
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Iterable, Optional

from ..models.execution import ColumnStatistics, Visualization

DEFAULT_SERIES_COLOR = "#0088FE"


def to_number(value: Any) -> Optional[float]:
    """Parse a scalar as a finite float, or return None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def classify_columns(rows: list[dict], columns: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split columns into (numeric, categorical).

    A column is numeric when more than half of its non-empty values parse as
    numbers; any other column with non-empty values is categorical.
    """
    numeric: list[str] = []
    categorical: list[str] = []
    for column in columns:
        values = [row.get(column) for row in rows if not is_empty(row.get(column))]
        if not values:
            continue
        numeric_count = sum(1 for v in values if to_number(v) is not None)
        if numeric_count > len(values) / 2:
            numeric.append(column)
        else:
            categorical.append(column)
    return numeric, categorical


def median(values: list[float]) -> float:
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def column_statistics(values: list[float]) -> ColumnStatistics:
    return ColumnStatistics(
        mean=sum(values) / len(values),
        median=median(values),
        min=min(values),
        max=max(values),
        count=len(values),
    )


def compute_statistics(rows: list[dict], numeric_columns: Iterable[str]) -> dict[str, ColumnStatistics]:
    stats: dict[str, ColumnStatistics] = {}
    for column in numeric_columns:
        values = [n for n in (to_number(row.get(column)) for row in rows) if n is not None]
        if values:
            stats[column] = column_statistics(values)
    return stats


def compute_frequencies(rows: list[dict], column: str) -> dict[str, int]:
    """Value counts for a column, most frequent first."""
    counter = Counter(str(row[column]) for row in rows if not is_empty(row.get(column)))
    return dict(counter.most_common())


def bar_chart(
    rows: list[dict],
    category_column: str,
    value_column: str,
    limit: int = 10,
    title: Optional[str] = None,
) -> Visualization:
    data = [
        {
            "name": str(row.get(category_column) or ""),
            "value": to_number(row.get(value_column)) or 0,
        }
        for row in rows[:limit]
    ]
    return Visualization(
        kind="bar",
        title=title or f"{category_column} vs {value_column}",
        rows=data,
        config={
            "xAxisKey": "name",
            "valueKey": "value",
            "series": [{"dataKey": "value", "name": value_column, "color": DEFAULT_SERIES_COLOR}],
        },
    )


def pie_chart(frequencies: dict[str, int], column: str, limit: int = 5) -> Visualization:
    data = [{"name": name, "value": count} for name, count in list(frequencies.items())[:limit]]
    return Visualization(
        kind="pie",
        title=f"Distribution of {column}",
        rows=data,
        config={"nameKey": "name", "valueKey": "value"},
    )


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}|^\d{2}/\d{2}/\d{4}")
DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")

SAMPLE_CHART_TOTALS = {"Category A": 430, "Category B": 370, "Category C": 280, "Category D": 120}


def _category(value: Any) -> str:
    return "Unknown" if is_empty(value) else str(value)


def _month_key(value: Any) -> str:
    text = str(value)
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text[:10], fmt)
        except ValueError:
            continue
        return f"{parsed.month}/{parsed.year}"
    return text


def _series_chart(kind: str, title: str, totals: dict[str, float]) -> Visualization:
    return Visualization(
        kind=kind,
        title=title,
        rows=[{"name": name, "value": value} for name, value in totals.items()],
        config={"xAxisKey": "name", "valueKey": "value"},
    )


def summed_bar_chart(rows: list[dict], category_column: str, value_column: str, limit: int = 8) -> Visualization:
    """Sum a numeric column per category, largest totals first."""
    totals: dict[str, float] = defaultdict(float)
    for row in rows:
        totals[_category(row.get(category_column))] += to_number(row.get(value_column)) or 0
    top = dict(sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit])
    return _series_chart("bar", f"{value_column} by {category_column}", top)


def trend_line_chart(rows: list[dict], date_column: str, value_column: str, limit: int = 12) -> Visualization:
    """Sum a numeric column per month of a date column."""
    totals: dict[str, float] = defaultdict(float)
    for row in rows:
        if is_empty(row.get(date_column)):
            continue
        totals[_month_key(row[date_column])] += to_number(row.get(value_column)) or 0
    points = dict(sorted(totals.items())[:limit])
    return _series_chart("line", f"{value_column} trend over time", points)


def count_pie_chart(rows: list[dict], column: str, limit: int = 6) -> Visualization:
    counts = Counter(_category(row.get(column)) for row in rows)
    return Visualization(
        kind="pie",
        title=f"Distribution by {column}",
        rows=[{"name": name, "value": count} for name, count in counts.most_common(limit)],
        config={"nameKey": "name", "valueKey": "value"},
    )


def date_columns(rows: list[dict], columns: Iterable[str]) -> list[str]:
    return [
        column
        for column in columns
        if any(isinstance(row.get(column), str) and DATE_PATTERN.match(row[column]) for row in rows)
    ]


def generate_charts(rows: list[dict], columns: Iterable[str]) -> list[Visualization]:
    """Charts derived from the data alone.

    A summed bar chart needs a categorical and a numeric column, a monthly trend
    line needs a date column too, and a count pie needs a categorical column.
    Falls back to a fixed sample bar chart when none of them apply.
    """
    charts: list[Visualization] = []
    if rows:
        numeric, categorical = classify_columns(rows, columns)
        if categorical and numeric:
            charts.append(summed_bar_chart(rows, categorical[0], numeric[0]))
        dates = date_columns(rows, categorical)
        if dates and numeric:
            charts.append(trend_line_chart(rows, dates[0], numeric[0]))
        if categorical:
            charts.append(count_pie_chart(rows, categorical[0]))
    if not charts:
        charts.append(_series_chart("bar", "Sample Distribution", SAMPLE_CHART_TOTALS))
    return charts
