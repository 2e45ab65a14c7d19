"""Execution request, progress and result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .agent import Agent
from .data_source import DataSource


class ExecutionMethod(str, Enum):
    REMOTE = "remote"
    DIRECT_AI = "direct-ai"
    MOCK = "mock"
    COLLABORATIVE = "collaborative"
    COLLABORATIVE_FALLBACK = "collaborative-fallback"
    ERROR = "error"


class ExecutionOptions(BaseModel):
    """Per-run options. Provider configuration travels here, never in globals."""

    model_config = ConfigDict(frozen=True)

    provider: str = "openai"
    api_key: Optional[str] = Field(default=None, repr=False)
    model: Optional[str] = None
    temperature: float = 0.2
    execution_mode: Optional[str] = None
    synthesize: Optional[bool] = None
    offline: bool = False


class ExecutionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent: Agent
    data_source: DataSource
    options: ExecutionOptions = ExecutionOptions()


class ProgressEvent(BaseModel):
    progress: int = Field(ge=0, le=100)
    stage: str
    estimated_completion_time: Optional[datetime] = None
    agent_id: Optional[str] = None


class ExecutionProgress(BaseModel):
    """Live progress of one in-flight run."""

    progress: int = 0
    stage: str = "Starting"
    logs: list[str] = []
    start_time: datetime = Field(default_factory=datetime.now)
    estimated_completion_time: Optional[datetime] = None

    def apply(self, event: ProgressEvent) -> None:
        # Progress never moves backwards within a run.
        self.progress = max(self.progress, event.progress)
        self.stage = event.stage
        if event.estimated_completion_time is not None:
            self.estimated_completion_time = event.estimated_completion_time

    def log(self, message: str) -> None:
        self.logs.append(message)


class CollaboratorState(BaseModel):
    progress: int = 0
    stage: str = "Waiting"
    completed: bool = False


class Visualization(BaseModel):
    kind: str = Field(
        default="bar",
        validation_alias=AliasChoices("kind", "type"),
    )
    title: str = "Data Visualization"
    rows: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("rows", "data"),
    )
    config: dict[str, Any] = {}


class ColumnStatistics(BaseModel):
    model_config = ConfigDict(extra="allow")

    mean: Optional[float] = None
    median: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    count: Optional[int] = None


class ExecutionResult(BaseModel):
    success: bool = True
    agent_id: Optional[str] = None
    data_source_id: Optional[str] = None
    summary: str = ""
    insights: list[str] = []
    visualizations: list[Visualization] = []
    statistics: dict[str, ColumnStatistics] = {}
    execution_method: ExecutionMethod = ExecutionMethod.MOCK
    error: Optional[str] = None
    execution_id: Optional[str] = None
    executed_at: datetime = Field(default_factory=datetime.now)
    ai_metadata: Optional[dict] = None
    collaborator_results: list[ExecutionResult] = []
    synthesis_strategy: Optional[str] = None
    synthesis_error: Optional[str] = None
    visualization_recommendations: Optional[Any] = None
    requires_collaborators: bool = False
    collaborator_ids: list[str] = []

    @classmethod
    def failure(cls, message: str, **kwargs: Any) -> ExecutionResult:
        return cls(
            success=False,
            error=message,
            execution_method=ExecutionMethod.ERROR,
            **kwargs,
        )
