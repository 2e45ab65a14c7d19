"""Pydantic records shared across the execution core."""

from .agent import COMPOSITE_KINDS, Agent, AgentKind, AgentStatus
from .data_source import DataSource, DataSourceMetadata
from .execution import (
    CollaboratorState,
    ColumnStatistics,
    ExecutionMethod,
    ExecutionOptions,
    ExecutionProgress,
    ExecutionRequest,
    ExecutionResult,
    ProgressEvent,
    Visualization,
)
from .provider import CompletionResult
from .report import Report

__all__ = [
    "COMPOSITE_KINDS",
    "Agent",
    "AgentKind",
    "AgentStatus",
    "CollaboratorState",
    "ColumnStatistics",
    "CompletionResult",
    "DataSource",
    "DataSourceMetadata",
    "ExecutionMethod",
    "ExecutionOptions",
    "ExecutionProgress",
    "ExecutionRequest",
    "ExecutionResult",
    "ProgressEvent",
    "Report",
    "Visualization",
]
