"""Loading agents and data sources from YAML/JSON files."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from ..models.agent import Agent
from ..models.data_source import DataSource


def _read(path: Path):
    if not path.exists():
        raise ConfigurationError(f"File not found: {path}")
    try:
        # JSON is a subset of YAML, so one loader covers both.
        return yaml.safe_load(path.read_text(encoding="utf-8-sig"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read {path.name}: {e}") from e


def load_data_source(path: Path) -> DataSource:
    """Load a data source: a mapping with id/name/data, or a bare list of rows."""
    raw = _read(path)
    if isinstance(raw, list):
        raw = {"id": path.stem, "name": path.stem, "data": raw}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path.name} does not describe a data source")
    raw.setdefault("id", path.stem)
    raw.setdefault("name", raw["id"])
    try:
        return DataSource.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid data source in {path.name}: {e}") from e


def load_agents(path: Path) -> dict[str, Agent]:
    """Load agents keyed by id from a file with a top-level `agents` list."""
    raw = _read(path)
    entries = raw.get("agents") if isinstance(raw, dict) else raw
    if not isinstance(entries, list):
        raise ConfigurationError(f"{path.name} must contain a list of agents")

    agents: dict[str, Agent] = {}
    for index, entry in enumerate(entries):
        try:
            agent = Agent.model_validate(entry)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid agent at index {index} in {path.name}: {e}") from e
        if agent.id in agents:
            raise ConfigurationError(f"Duplicate agent id '{agent.id}' in {path.name}")
        agents[agent.id] = agent
    return agents
