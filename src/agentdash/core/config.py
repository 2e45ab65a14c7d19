"""3-layer configuration system for agentdash.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.agentdash/config.yaml)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Optional

import yaml

CONFIG_DIR = ".agentdash"

DEFAULT_CONFIG: dict = {
    "remote": {
        "enabled": True,
        "base_url": "http://localhost:3001/api",
        "timeout_seconds": 10,
        "poll_interval_seconds": 2,
        "max_poll_attempts": 30,
        "token_env": "AGENTDASH_API_TOKEN",
    },
    "pacing": {
        # Multiplier on stage durations; 0 plays the schedule instantly.
        "scale": 1.0,
    },
    "synthesis": {
        "tick_seconds": 0.5,
        "tick_increment": 10,
    },
    "analysis": {
        "max_sample_rows": 20,
        "max_chart_rows": 10,
    },
    "ai": {
        "provider": "openai",
        "temperature": 0.2,
        "timeout_seconds": 120,
        "retry_attempts": 3,
        "retry_delay_seconds": 5,
        "max_tokens": 4000,
        "openai": {
            "model": "gpt-4-turbo",
            "api_key_env": "OPENAI_API_KEY",
        },
        "openrouter": {
            "model": "anthropic/claude-3-haiku",
            "api_key_env": "OPENROUTER_API_KEY",
            "referer": "https://agentdash.local",
            "title": "Agent Dashboard",
        },
        "anthropic": {
            "model": "claude-3-5-haiku-latest",
            "api_key_env": "ANTHROPIC_API_KEY",
        },
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .agentdash/config.yaml."""
    config_path = project_path / CONFIG_DIR / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        return yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError):
        return {}


def get_effective_config(
    project_path: Optional[Path] = None,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a run."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    if project_path is not None:
        project_config = load_project_config(project_path)
        if project_config:
            config = deep_merge(config, project_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    return config


def resolve_api_key(config: dict, provider: Optional[str] = None) -> Optional[str]:
    """Read a provider's API key from the environment variable named in config.

    Only the CLI calls this; everything below it receives the key explicitly.
    """
    ai_config = config.get("ai", {})
    provider_name = provider or ai_config.get("provider", "openai")
    provider_config = ai_config.get(provider_name, {})
    if provider_config.get("api_key"):
        return provider_config["api_key"]
    env_var = provider_config.get("api_key_env")
    return os.environ.get(env_var) if env_var else None


def resolve_remote_token(config: dict) -> Optional[str]:
    env_var = config.get("remote", {}).get("token_env")
    return os.environ.get(env_var) if env_var else None
