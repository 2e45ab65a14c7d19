"""Persisted report record."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .execution import ColumnStatistics, ExecutionMethod, Visualization


class Report(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    description: str = ""
    agent_id: str
    data_source_id: str
    summary: str = ""
    insights: list[str] = []
    visualizations: list[Visualization] = []
    statistics: dict[str, ColumnStatistics] = {}
    generated_at: datetime = Field(default_factory=datetime.now)
    execution_method: ExecutionMethod = ExecutionMethod.MOCK
