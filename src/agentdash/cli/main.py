"""agentdash - run analysis agents against tabular data sources."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from .. import __version__
from ..providers.base import KNOWN_PROVIDERS


@click.group()
@click.version_option(version=__version__, prog_name="agentdash")
def agentdash_cli() -> None:
    """agentdash - staged, collaborative data analysis agents."""


@agentdash_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
def init(project: str) -> None:
    """Initialize agentdash in a project."""
    from ..core.orchestrator import initialize_project

    initialize_project(Path(project))


@agentdash_cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True, help="Project path")
@click.option("--agent", "-a", "agent_id", required=True, help="Agent id from the agent file")
@click.option("--data", "-d", "data_path", type=click.Path(exists=True), required=True,
              help="Data source file (YAML or JSON)")
@click.option("--agents-file", type=click.Path(exists=True), help="Agent file override")
@click.option("--ai-provider", type=click.Choice(list(KNOWN_PROVIDERS)))
@click.option("--ai-model", type=str, help="Model override")
@click.option("--mode", "execution_mode", type=click.Choice(["sequential", "parallel"]),
              help="Collaborator execution mode override")
@click.option("--no-synthesis", is_flag=True, help="Combine collaborator results without synthesis")
@click.option("--offline", is_flag=True, help="Skip the remote agent service")
@click.option("--output-format", "-f", type=click.Choice(["markdown", "json"]), default="markdown")
@click.option("--quiet", "-q", is_flag=True, help="Hide run logs")
def run(
    project: str,
    agent_id: str,
    data_path: str,
    agents_file: str | None,
    ai_provider: str | None,
    ai_model: str | None,
    execution_mode: str | None,
    no_synthesis: bool,
    offline: bool,
    output_format: str,
    quiet: bool,
) -> None:
    """Run an agent against a data source and write a report."""
    from ..core.orchestrator import run_agent

    exit_code = asyncio.run(
        run_agent(
            project_path=Path(project),
            agent_id=agent_id,
            data_path=Path(data_path),
            agents_file=Path(agents_file) if agents_file else None,
            ai_provider=ai_provider,
            ai_model=ai_model,
            execution_mode=execution_mode,
            synthesize=False if no_synthesis else None,
            offline=offline,
            output_format=output_format,
            verbose=not quiet,
        )
    )
    sys.exit(exit_code)


@agentdash_cli.command()
def templates() -> None:
    """List the built-in agent templates."""
    from ..core.agents import AGENT_TEMPLATES

    for template_id, template in AGENT_TEMPLATES.items():
        click.echo(f"{template_id:<22} {template['kind'].value:<14} {template['description']}")


def main() -> None:
    agentdash_cli()


if __name__ == "__main__":
    main()
