"""Shared fixtures for agentdash tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentdash.core.config import deep_merge, get_effective_config
from agentdash.models import Agent, AgentKind, DataSource, ExecutionOptions, ExecutionRequest


@pytest.fixture
def fast_config() -> dict:
    """Effective config with pacing and synthesis ticking switched off."""
    return deep_merge(
        get_effective_config(),
        {
            "remote": {"enabled": False},
            "pacing": {"scale": 0},
            "synthesis": {"tick_seconds": 0},
            "ai": {"retry_attempts": 1, "retry_delay_seconds": 0},
        },
    )


@pytest.fixture
def sales_rows() -> list[dict]:
    return [
        {"region": "North", "product": "Widget", "revenue": 1200, "units": "10"},
        {"region": "South", "product": "Gadget", "revenue": 800, "units": "8"},
        {"region": "North", "product": "Gizmo", "revenue": 1500.5, "units": "12"},
        {"region": "East", "product": "Widget", "revenue": 400, "units": ""},
        {"region": "North", "product": "Gadget", "revenue": 950, "units": "9"},
    ]


@pytest.fixture
def sales_source(sales_rows: list[dict]) -> DataSource:
    return DataSource(id="sales", name="Quarterly Sales", data=sales_rows)


@pytest.fixture
def text_source() -> DataSource:
    """A data source with no numeric columns."""
    return DataSource(
        id="feedback",
        name="Customer Feedback",
        data=[
            {"customer": "acme", "sentiment": "positive"},
            {"customer": "globex", "sentiment": "negative"},
            {"customer": "initech", "sentiment": "positive"},
        ],
    )


@pytest.fixture
def analyzer() -> Agent:
    return Agent(id="analyzer", name="Data Analyzer", type="analyzer")


@pytest.fixture
def summarizer() -> Agent:
    return Agent(id="summarizer", name="Data Summarizer", type="summarizer")


@pytest.fixture
def team(analyzer: Agent, summarizer: Agent) -> Agent:
    return Agent(
        id="team",
        name="Collaborative Analyzer",
        kind=AgentKind.COLLABORATIVE,
        collaboratorIds=[analyzer.id, summarizer.id],
        configuration={"executionMode": "sequential", "synthesizeResults": True},
    )


@pytest.fixture
def offline_options() -> ExecutionOptions:
    return ExecutionOptions(offline=True)


@pytest.fixture
def request_for(offline_options: ExecutionOptions):
    def build(agent: Agent, source: DataSource, options: ExecutionOptions | None = None) -> ExecutionRequest:
        return ExecutionRequest(agent=agent, data_source=source, options=options or offline_options)

    return build


@pytest.fixture
def initialized_project(tmp_path: Path) -> Path:
    """A project with .agentdash initialized and a small data file."""
    project = tmp_path / "test-project"
    project.mkdir()
    base = project / ".agentdash"
    (base / "reports").mkdir(parents=True)
    (base / "config.yaml").write_text(
        "remote:\n  enabled: false\n\npacing:\n  scale: 0\n\nsynthesis:\n  tick_seconds: 0\n\n"
        "ai:\n  provider: openai\n  openai:\n    api_key_env: AGENTDASH_TEST_MISSING_KEY\n",
        encoding="utf-8",
    )
    (base / "agents.yaml").write_text(
        "agents:\n"
        "  - id: analyzer\n"
        "    name: Data Analyzer\n"
        "    type: analyzer\n"
        "  - id: summarizer\n"
        "    name: Data Summarizer\n"
        "    type: summarizer\n"
        "  - id: team\n"
        "    name: Team\n"
        "    type: collaborative\n"
        "    collaborators: [analyzer, summarizer]\n"
        "  - id: broken\n"
        "    name: Broken Team\n"
        "    type: pipeline\n"
        "    collaborators: [analyzer, ghost]\n",
        encoding="utf-8",
    )
    (project / "sales.yaml").write_text(
        "id: sales\n"
        "name: Quarterly Sales\n"
        "data:\n"
        "  - {region: North, revenue: 1200}\n"
        "  - {region: South, revenue: 800}\n"
        "  - {region: North, revenue: 950}\n",
        encoding="utf-8",
    )
    return project
