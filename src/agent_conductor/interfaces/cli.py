"""CLI: Typer app wired to the agent orchestrator."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional, Union

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agent_conductor.application import history_analytics
from agent_conductor.application.orchestrator import AgentOrchestrator
from agent_conductor.config import ConductorConfig, load_config
from agent_conductor.domain import AgentResponse, ResponseType, Result, UserRequest
from agent_conductor.infrastructure.chat import build_chat_client
from agent_conductor.infrastructure.guardrail import GuardrailPolicy, PolicyGuardrail
from agent_conductor.infrastructure.memory import JsonFileLongTermMemory, build_memory
from agent_conductor.infrastructure.reasoning import LLMReasoningService
from agent_conductor.infrastructure.telemetry import setup_telemetry, shutdown_telemetry
from agent_conductor.infrastructure.tools import InProcessToolService, MCPToolService

app = typer.Typer(help="agent-conductor: reason, act with tools, answer.")

_TYPE_STYLES = {
    ResponseType.SUCCESS: "green",
    ResponseType.INFORMATION: "cyan",
    ResponseType.WARNING: "yellow",
    ResponseType.ERROR: "red",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_tool_service(config: ConductorConfig) -> Union[MCPToolService, InProcessToolService]:
    """MCP servers from config make up the catalog; with none configured the catalog is empty."""
    width = config.agent.max_concurrent_tool_executions
    if config.mcp_servers:
        return MCPToolService(config.mcp_servers, max_concurrency=width)
    return InProcessToolService(max_concurrency=width)


def build_orchestrator(
    config: ConductorConfig,
    tools: Optional[Union[MCPToolService, InProcessToolService]] = None,
) -> AgentOrchestrator:
    """Wire the configured adapters into an ``AgentOrchestrator``."""
    model_config = config.reasoning_model
    reasoning = LLMReasoningService(build_chat_client(model_config), model_config)
    return AgentOrchestrator(
        reasoning,
        tools if tools is not None else build_tool_service(config),
        PolicyGuardrail(GuardrailPolicy.from_config(config.guardrail)),
        build_memory(config.memory),
        config=config.agent,
    )


async def _ask(config: ConductorConfig, request: UserRequest) -> Result[AgentResponse]:
    tools = build_tool_service(config)
    try:
        orchestrator = build_orchestrator(config, tools)
        return await orchestrator.process_request(request)
    finally:
        if isinstance(tools, MCPToolService):
            await tools.aclose()


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="What you want the agent to do."),
    session: str = typer.Option("", "--session", "-s", help="Continue an existing session id."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging to stderr."),
) -> None:
    """Run one request end-to-end and print the response."""
    _configure_logging(verbose)
    config = load_config()
    setup_telemetry(config)

    try:
        request = UserRequest.create(prompt, session_id=session or None)
    except ValueError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)

    rprint(f"[dim]Using model: {config.reasoning_model.model} at {config.reasoning_model.base_url}[/dim]")
    try:
        result = asyncio.run(_ask(config, request))
    finally:
        shutdown_telemetry()
    if result.is_failure:
        rprint(f"[red]Run failed:[/red] {result.error}")
        sys.exit(1)

    response = result.value
    meta = response.metadata
    style = _TYPE_STYLES.get(response.type, "white")
    rprint(
        Panel.fit(
            f"[bold]Session:[/bold] {meta.get('session_id', '?')}\n"
            f"[bold]Result:[/bold] [{style}]{response.type.value}[/{style}]\n"
            f"[bold]Tool calls:[/bold] {meta.get('tool_executions', meta.get('iterations', 0))}"
            f" ({meta.get('successful_executions', 0)} ok, {meta.get('failed_executions', 0)} failed)"
        )
    )
    rprint(response.content)
    if not response.success:
        sys.exit(1)


@app.command()
def tools(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging to stderr."),
) -> None:
    """List the tool catalog from the configured tool servers."""
    _configure_logging(verbose)
    config = load_config()

    async def _list():
        service = build_tool_service(config)
        try:
            return await service.list_tools()
        finally:
            if isinstance(service, MCPToolService):
                await service.aclose()

    result = asyncio.run(_list())
    if result.is_failure:
        rprint(f"[red]Could not list tools:[/red] {result.error}")
        sys.exit(1)
    if not result.value:
        rprint("[dim]No tools configured. Add mcp_servers to your CONDUCTOR_CONFIG_PATH file.[/dim]")
        return

    table = Table(title="Tools", show_header=True, header_style="bold")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Parameters", style="green")
    table.add_column("Description", overflow="fold")
    for tool in result.value:
        params = ", ".join(
            f"{name}{'*' if p.required else ''}" for name, p in tool.parameters.items()
        ) or "-"
        table.add_row(tool.name, params, tool.description)
    Console().print(table)


@app.command()
def history(
    session_id: str = typer.Argument(..., help="Session id to inspect."),
) -> None:
    """Show execution analytics for a stored session (file memory backend)."""
    config = load_config()
    memory = build_memory(config.memory)
    if not isinstance(memory, JsonFileLongTermMemory):
        rprint("[red]Session history is only stored across runs with the 'file' memory backend.[/red]")
        sys.exit(1)

    try:
        entries = asyncio.run(memory.load_history(session_id))
    except ValueError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)
    if not entries:
        rprint(f"[dim]No history for session {session_id} in {memory.root}[/dim]")
        return

    summary = history_analytics.summarize(entries)
    perf = history_analytics.performance_metrics(entries)
    errors = history_analytics.analyze_errors(entries)

    rprint(
        Panel.fit(
            f"[bold]Session:[/bold] {session_id}\n"
            f"[bold]Executions:[/bold] {summary.total} "
            f"({summary.successful} ok, {summary.failed} failed, "
            f"{summary.success_rate:.0%} success)\n"
            f"[bold]Duration:[/bold] {summary.total_duration_ms:.1f} ms total, "
            f"{summary.average_duration_ms:.1f} ms average\n"
            f"[bold]Timing (ok):[/bold] min {perf.min_ms:.1f} / median {perf.median_ms:.1f} / "
            f"max {perf.max_ms:.1f} ms, std dev {perf.std_dev_ms:.1f}\n"
            f"[bold]Most common error:[/bold] {errors.most_common_error or '-'} "
            f"({errors.retryable_errors} retryable)"
        )
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Tool", style="cyan")
    table.add_column("Outcome")
    table.add_column("ms", justify="right")
    table.add_column("Detail", overflow="fold")
    for i, entry in enumerate(entries, start=1):
        if entry.is_success:
            execution = entry.value
            table.add_row(
                str(i), execution.tool_name, "[green]ok[/green]",
                f"{execution.duration_ms:.1f}", execution.result_text()[:80],
            )
        else:
            error = entry.error
            table.add_row(
                str(i), str(error.metadata.get("tool_name") or "unknown"), f"[red]{error.code}[/red]",
                f"{float(error.metadata.get('execution_duration_ms') or 0.0):.1f}", error.message[:80],
            )
    Console().print(table)
