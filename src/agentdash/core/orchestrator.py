"""Agent executor.

Entry point for running an agent against a data source. Owns agent status
transitions and the live ExecutionProgress of every run it starts.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .. import __version__
from ..errors import ConfigurationError, FatalExecutionError
from ..models.agent import Agent, AgentStatus
from ..models.data_source import DataSource
from ..models.execution import (
    ExecutionMethod,
    ExecutionOptions,
    ExecutionProgress,
    ExecutionRequest,
    ExecutionResult,
    ProgressEvent,
)
from ..utils.sanitize import mask_key, sanitize_error
from .backends import ExecutionBackend, ExecutionBackendSelector
from .config import CONFIG_DIR, get_effective_config, resolve_api_key, resolve_remote_token
from .coordinator import CollaborativeCoordinator, validate_collaborators
from .pipeline import DEFAULT_STAGES, Stage, StagePipelineRunner
from .reports import build_report, export_report_json, render_report_markdown
from .sources import load_agents, load_data_source
from .synthesis import ResultSynthesizer

COLLABORATORS_REQUIRED = "COLLABORATORS_REQUIRED"

console = Console()

ProgressSink = Callable[[ProgressEvent], None]
LogSink = Callable[[str], None]


def initialize_project(project_path: Path) -> None:
    """Create the .agentdash directory with a starter config and agent file."""
    base = project_path / CONFIG_DIR
    (base / "reports").mkdir(parents=True, exist_ok=True)

    config_path = base / "config.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# agentdash project configuration\n"
            f'agentdash_version: "{__version__}"\n'
            "\n"
            "remote:\n"
            "  enabled: false\n"
            "  base_url: http://localhost:3001/api\n"
            "\n"
            "ai:\n"
            "  provider: openai\n",
            encoding="utf-8",
        )

    agents_path = base / "agents.yaml"
    if not agents_path.exists():
        agents_path.write_text(
            "agents:\n"
            "  - id: analyzer\n"
            "    name: Data Analyzer\n"
            "    type: analyzer\n"
            "  - id: summarizer\n"
            "    name: Data Summarizer\n"
            "    type: summarizer\n"
            "  - id: team\n"
            "    name: Collaborative Analyzer\n"
            "    type: collaborative\n"
            "    collaborators: [analyzer, summarizer]\n"
            "    configuration:\n"
            "      executionMode: sequential\n"
            "      synthesizeResults: true\n",
            encoding="utf-8",
        )

    console.print(f"  [green]Initialized[/green] {CONFIG_DIR}/ in {project_path.name}")


class AgentExecutor:
    """Runs single and composite agents.

    Composite agents (collaborative, pipeline) with resolved collaborators go
    through the CollaborativeCoordinator; everything else runs one staged
    pipeline. Only ConfigurationError escapes execute(); other failures end
    up as a failed result, an `error` status and a final log line that
    matches the result's error.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        backend: Optional[ExecutionBackend] = None,
        synthesizer: Optional[ResultSynthesizer] = None,
        stages: Optional[Sequence[Stage]] = None,
        console: Optional[Console] = None,
    ):
        self.config = config if config is not None else get_effective_config()
        self.backend = backend or ExecutionBackendSelector.from_config(self.config)
        self.synthesizer = synthesizer or ResultSynthesizer(self.config)
        self.stages = tuple(stages or DEFAULT_STAGES)
        self.pacing_scale = self.config.get("pacing", {}).get("scale", 1.0)
        synthesis = self.config.get("synthesis", {})
        self.tick_seconds = synthesis.get("tick_seconds", 0.5)
        self.tick_increment = synthesis.get("tick_increment", 10)
        self.console = console
        self.progress: dict[str, ExecutionProgress] = {}

    def _runner(self) -> StagePipelineRunner:
        return StagePipelineRunner(self.backend, self.stages, self.pacing_scale)

    def _status(self, message: str) -> None:
        if self.console is not None:
            self.console.print(f"  {message}")

    def _track(
        self,
        agent: Agent,
        on_progress: Optional[ProgressSink],
        on_log: Optional[LogSink],
    ) -> tuple[ExecutionProgress, ProgressSink, LogSink]:
        record = ExecutionProgress()
        self.progress[agent.id] = record
        agent.status = AgentStatus.RUNNING

        def progress(event: ProgressEvent) -> None:
            record.apply(event)
            if on_progress:
                on_progress(event)

        def log(message: str) -> None:
            record.log(message)
            if on_log:
                on_log(message)

        return record, progress, log

    async def execute(
        self,
        agent: Agent,
        data_source: DataSource,
        options: Optional[ExecutionOptions] = None,
        collaborators: Optional[Sequence[Agent]] = None,
        on_progress: Optional[ProgressSink] = None,
        on_log: Optional[LogSink] = None,
    ) -> ExecutionResult:
        if agent is None or data_source is None:
            raise ConfigurationError("Agent and data source are required")
        options = options or ExecutionOptions()

        resolved: list[Agent] = []
        if agent.is_composite and agent.collaborator_ids:
            by_id = {c.id: c for c in collaborators or []}
            missing = [cid for cid in agent.collaborator_ids if cid not in by_id]
            if missing:
                if on_log:
                    on_log(f"Collaborators required for {agent.name}: {', '.join(missing)}")
                return ExecutionResult(
                    success=False,
                    agent_id=agent.id,
                    data_source_id=data_source.id,
                    error=COLLABORATORS_REQUIRED,
                    execution_method=ExecutionMethod.ERROR,
                    requires_collaborators=True,
                    collaborator_ids=missing,
                )
            resolved = [by_id[cid] for cid in agent.collaborator_ids]
            validate_collaborators(agent, resolved)

        record, progress, log = self._track(agent, on_progress, on_log)
        log(f"Starting execution of {agent.name} on {data_source.name}")

        try:
            if resolved:
                result = await self._execute_collaborative(
                    agent, data_source, resolved, options, progress, log
                )
            else:
                if agent.is_composite:
                    log("Warning: Collaborative agent has no collaborators defined")
                    log("Falling back to standard execution")
                request = ExecutionRequest(agent=agent, data_source=data_source, options=options)
                result = await self._runner().run(request, progress, log)
        except ConfigurationError:
            agent.status = AgentStatus.ERROR
            raise
        except FatalExecutionError as e:
            message = f"Execution failed: {sanitize_error(str(e))}"
            log(message)
            result = ExecutionResult.failure(
                message,
                agent_id=agent.id,
                data_source_id=data_source.id,
                collaborator_results=e.partial_results,
            )

        if result.success:
            agent.status = AgentStatus.COMPLETED
            progress(ProgressEvent(progress=100, stage="Completed"))
            self._status(
                f"[green]OK[/green] {escape(agent.name)}: {len(result.insights)} insights, "
                f"{len(result.visualizations)} visualizations via {result.execution_method.value}"
            )
        else:
            agent.status = AgentStatus.ERROR
            if not record.logs or record.logs[-1] != result.error:
                log(result.error or "Execution failed")
                result.error = record.logs[-1]
            self._status(f"[red]ERROR[/red] {escape(agent.name)}: {escape(result.error or '')}")
        return result

    async def _execute_collaborative(
        self,
        agent: Agent,
        data_source: DataSource,
        collaborators: list[Agent],
        options: ExecutionOptions,
        progress: ProgressSink,
        log: LogSink,
    ) -> ExecutionResult:
        async def run_collaborator(
            collaborator: Agent,
            on_progress: ProgressSink,
            on_log: LogSink,
        ) -> ExecutionResult:
            _, c_progress, c_log = self._track(collaborator, on_progress, on_log)
            request = ExecutionRequest(agent=collaborator, data_source=data_source, options=options)
            result = await self._runner().run(request, c_progress, c_log)
            if result.success:
                collaborator.status = AgentStatus.COMPLETED
            else:
                collaborator.status = AgentStatus.ERROR
                self._status(f"[yellow]WARN[/yellow] Collaborator {escape(collaborator.name)} failed")
            return result

        coordinator = CollaborativeCoordinator(
            run_collaborator,
            self.synthesizer,
            tick_seconds=self.tick_seconds,
            tick_increment=self.tick_increment,
        )
        return await coordinator.run(agent, data_source, collaborators, options, progress, log)


async def run_agent(
    project_path: Path,
    agent_id: str,
    data_path: Path,
    agents_file: Optional[Path] = None,
    ai_provider: Optional[str] = None,
    ai_model: Optional[str] = None,
    execution_mode: Optional[str] = None,
    synthesize: Optional[bool] = None,
    offline: bool = False,
    output_format: str = "markdown",
    verbose: bool = True,
) -> int:
    """Run one agent from the project's agent file. Returns exit code."""
    project_path = Path(project_path).resolve()
    if not project_path.exists():
        console.print(f"  [red]ERROR[/red] Project path does not exist: {project_path}")
        return 12
    if not (project_path / CONFIG_DIR).exists():
        console.print("  [red]ERROR[/red] Project not initialized. Run: agentdash init -p <path>")
        return 12

    cli_overrides: dict = {}
    if ai_provider:
        cli_overrides.setdefault("ai", {})["provider"] = ai_provider
    if ai_model:
        provider_name = ai_provider or "openai"
        cli_overrides.setdefault("ai", {}).setdefault(provider_name, {})["model"] = ai_model
    effective_config = get_effective_config(project_path, cli_overrides=cli_overrides or None)

    try:
        agents = load_agents(agents_file or project_path / CONFIG_DIR / "agents.yaml")
        data_source = load_data_source(Path(data_path))
    except ConfigurationError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e))}")
        return 11

    agent = agents.get(agent_id)
    if agent is None:
        console.print(
            f"  [red]ERROR[/red] Unknown agent '{escape(agent_id)}'. "
            f"Available: {escape(', '.join(sorted(agents)))}"
        )
        return 11
    collaborators = [agents[cid] for cid in agent.collaborator_ids if cid in agents]

    ai_config = effective_config.get("ai", {})
    provider_name = ai_provider or ai_config.get("provider", "openai")
    api_key = resolve_api_key(effective_config, provider_name)
    options = ExecutionOptions(
        provider=provider_name,
        api_key=api_key,
        model=ai_model,
        temperature=ai_config.get("temperature", 0.2),
        execution_mode=execution_mode,
        synthesize=synthesize,
        offline=offline,
    )

    console.print()
    console.print(f"  [bold cyan]AGENTDASH[/bold cyan] v{__version__}")
    console.print(f"  Agent:    [white]{escape(agent.name)}[/white] ({agent.kind.value})")
    console.print(
        f"  Data:     [white]{escape(data_source.name)}[/white] "
        f"({data_source.row_count} rows, {data_source.column_count} columns)"
    )
    console.print(f"  Provider: [white]{provider_name}[/white] (key {mask_key(api_key)})")
    if offline:
        console.print("  Mode:     [yellow]OFFLINE[/yellow]")
    console.print()

    def on_log(message: str) -> None:
        if verbose:
            console.print(f"    [dim]{escape(message)}[/dim]")

    backend = ExecutionBackendSelector.from_config(
        effective_config, token=resolve_remote_token(effective_config)
    )
    executor = AgentExecutor(effective_config, backend=backend, console=console)

    try:
        result = await executor.execute(
            agent, data_source, options, collaborators=collaborators, on_log=on_log
        )
    except ConfigurationError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e))}")
        return 11

    if result.requires_collaborators:
        console.print(
            f"  [red]ERROR[/red] Collaborators not found in agent file: "
            f"{escape(', '.join(result.collaborator_ids))}"
        )
        return 11
    if not result.success:
        return 1

    report = build_report(agent, data_source, result)
    reports_dir = project_path / CONFIG_DIR / "reports"
    json_path = export_report_json(report, reports_dir / f"{report.id}.json")
    console.print(f"  [green]OK[/green] Report: {json_path}")
    if output_format == "markdown":
        md_path = reports_dir / f"{report.id}.md"
        md_path.write_text(render_report_markdown(report), encoding="utf-8")
        console.print(f"  [green]OK[/green] Markdown: {md_path}")
    if result.synthesis_error:
        console.print(
            f"  [yellow]WARN[/yellow] Synthesis fell back to a mechanical merge: "
            f"{escape(result.synthesis_error)}"
        )
    console.print()
    return 0
