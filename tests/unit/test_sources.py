"""Tests for core/sources.py."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from agentdash.core.sources import load_agents, load_data_source
from agentdash.errors import ConfigurationError
from agentdash.models import AgentKind


class TestLoadDataSource:
    def test_mapping(self, initialized_project: Path):
        source = load_data_source(initialized_project / "sales.yaml")
        assert source.id == "sales"
        assert source.name == "Quarterly Sales"
        assert source.row_count == 3
        assert source.columns == ["region", "revenue"]

    def test_bare_json_list(self, tmp_path: Path):
        path = tmp_path / "orders.json"
        path.write_text(json.dumps([{"sku": "a", "qty": 1}, {"sku": "b", "qty": 2}]), encoding="utf-8")

        source = load_data_source(path)

        assert source.id == "orders"
        assert source.name == "orders"
        assert source.column_count == 2

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_data_source(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("data: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_data_source(path)

    def test_scalar_rejected(self, tmp_path: Path):
        path = tmp_path / "scalar.yaml"
        path.write_text("just a string\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="does not describe"):
            load_data_source(path)


class TestLoadAgents:
    def test_keyed_by_id(self, initialized_project: Path):
        agents = load_agents(initialized_project / ".agentdash" / "agents.yaml")
        assert list(agents) == ["analyzer", "summarizer", "team", "broken"]
        assert agents["team"].kind == AgentKind.COLLABORATIVE
        assert agents["broken"].collaborator_ids == ["analyzer", "ghost"]

    def test_duplicate_ids_rejected(self, tmp_path: Path):
        path = tmp_path / "agents.yaml"
        path.write_text(
            "agents:\n  - {id: a, name: A}\n  - {id: a, name: Again}\n", encoding="utf-8"
        )
        with pytest.raises(ConfigurationError, match="Duplicate"):
            load_agents(path)

    def test_invalid_entry(self, tmp_path: Path):
        path = tmp_path / "agents.yaml"
        path.write_text("agents:\n  - {id: a, name: A, type: wizard}\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="index 0"):
            load_agents(path)
