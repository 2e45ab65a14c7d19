"""Agent kind prompts and built-in agent templates."""

from __future__ import annotations

import copy
import uuid
from typing import Optional

from ..models.agent import Agent, AgentKind

BASE_PROMPT = (
    "You are an AI data analyst assistant that helps analyze and interpret data.\n"
    "You will be given a dataset and are expected to provide insights based on "
    "your capabilities."
)

SYSTEM_PROMPTS: dict[AgentKind, str] = {
    AgentKind.ANALYZER: (
        "Your task is to perform statistical analysis on the dataset. You should:\n"
        "1. Identify the data types of each column\n"
        "2. Calculate key statistics for numerical columns (mean, median, min, max, standard deviation)\n"
        "3. Identify correlations between numerical columns\n"
        "4. Detect outliers and anomalies\n"
        "5. Report the top insights you've discovered\n"
        "Respond with a JSON object with keys: summary, insights, statistics, visualizations."
    ),
    AgentKind.VISUALIZER: (
        "Your task is to recommend appropriate visualizations for the dataset. You should:\n"
        "1. Identify which columns would be most insightful to visualize\n"
        "2. Recommend specific chart types (bar, line, pie, scatter, etc.)\n"
        "3. Explain why each visualization would be helpful\n"
        "4. Provide configuration for each visualization (axes, colors, grouping)\n"
        "Respond with a JSON object with keys: summary, insights, visualizations. "
        "Each visualization has type, title, data and config."
    ),
    AgentKind.SUMMARIZER: (
        "Your task is to create a concise text summary of the dataset. You should:\n"
        "1. Describe the overall structure and purpose of the dataset\n"
        "2. Highlight the most important patterns and trends\n"
        "3. Summarize key statistics in natural language\n"
        "4. Provide actionable recommendations based on the data\n"
        "5. Format the summary as a markdown report with sections\n"
        "Respond with a JSON object with keys: summary, insights."
    ),
}

DEFAULT_KIND_PROMPT = "Analyze the provided dataset and return insights in JSON format."

SYNTHESIS_SYSTEM_PROMPT = (
    "You are an expert data analyst tasked with synthesizing results from "
    "multiple analyses."
)


def get_system_prompt(kind: AgentKind) -> str:
    """Return the system prompt for an agent kind."""
    return f"{BASE_PROMPT}\n{SYSTEM_PROMPTS.get(kind, DEFAULT_KIND_PROMPT)}"


AGENT_TEMPLATES: dict[str, dict] = {
    "data-analyzer": {
        "name": "Data Analyzer",
        "description": "Analyzes datasets to identify patterns, trends, and statistical insights",
        "kind": AgentKind.ANALYZER,
        "capabilities": ["statistical-analysis", "trend-detection", "anomaly-detection"],
        "configuration": {
            "analysisDepth": "standard",
            "statisticalMethods": ["mean", "median", "correlation"],
        },
    },
    "data-visualizer": {
        "name": "Data Visualizer",
        "description": "Creates visual representations of data using charts and graphs",
        "kind": AgentKind.VISUALIZER,
        "capabilities": ["chart-generation"],
        "configuration": {"chartTypes": ["bar", "line", "pie"], "autoSelectVisualization": True},
    },
    "data-summarizer": {
        "name": "Data Summarizer",
        "description": "Generates concise text summaries of data insights and findings",
        "kind": AgentKind.SUMMARIZER,
        "capabilities": ["text-summarization"],
        "configuration": {"summaryLength": "medium", "keyPointsCount": 5},
    },
    "multi-agent-analysis": {
        "name": "Collaborative Analyzer",
        "description": "Coordinates multiple agents for comprehensive data analysis",
        "kind": AgentKind.COLLABORATIVE,
        "capabilities": ["agent-collaboration", "workflow-coordination", "result-synthesis"],
        "configuration": {
            "maxCollaborators": 3,
            "executionMode": "sequential",
            "synthesizeResults": True,
        },
    },
    "data-pipeline": {
        "name": "Analysis Pipeline",
        "description": "Creates a multi-stage data processing pipeline for complex analysis",
        "kind": AgentKind.PIPELINE,
        "capabilities": ["agent-collaboration", "workflow-coordination", "data-transformation"],
        "configuration": {"maxCollaborators": 4, "executionMode": "sequential"},
    },
}


def create_agent_from_template(
    template_id: str,
    agent_id: Optional[str] = None,
    name: Optional[str] = None,
    collaborator_ids: Optional[list[str]] = None,
    configuration: Optional[dict] = None,
) -> Agent:
    """Instantiate an idle agent from a built-in template."""
    if template_id not in AGENT_TEMPLATES:
        raise ValueError(f"Unknown agent template: {template_id}")

    template = copy.deepcopy(AGENT_TEMPLATES[template_id])
    merged_config = {**template["configuration"], **(configuration or {})}
    return Agent(
        id=agent_id or uuid.uuid4().hex[:9],
        name=name or template["name"],
        kind=template["kind"],
        description=template["description"],
        capabilities=template["capabilities"],
        configuration=merged_config,
        collaborator_ids=collaborator_ids or [],
    )
