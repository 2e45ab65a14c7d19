"""Agent data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class AgentKind(str, Enum):
    ANALYZER = "analyzer"
    VISUALIZER = "visualizer"
    SUMMARIZER = "summarizer"
    COLLABORATIVE = "collaborative"
    PIPELINE = "pipeline"


class AgentStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


COMPOSITE_KINDS = frozenset({AgentKind.COLLABORATIVE, AgentKind.PIPELINE})


class Agent(BaseModel):
    id: str
    name: str
    kind: AgentKind = Field(
        default=AgentKind.ANALYZER, validation_alias=AliasChoices("kind", "type")
    )
    description: str = ""
    capabilities: list[str] = []
    configuration: dict = {}
    collaborator_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("collaborator_ids", "collaboratorIds", "collaborators"),
    )
    status: AgentStatus = AgentStatus.IDLE

    @property
    def is_composite(self) -> bool:
        return self.kind in COMPOSITE_KINDS

    @property
    def execution_mode(self) -> str:
        return self.configuration.get("executionMode") or "sequential"

    @property
    def synthesize_results(self) -> bool:
        return self.configuration.get("synthesizeResults") is not False

    @property
    def max_collaborators(self) -> Optional[int]:
        value = self.configuration.get("maxCollaborators")
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None
