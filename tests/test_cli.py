"""Tests for CLI commands using CliRunner (no live LLM required).

Covers the happy path and error paths for:
  - conductor ask
  - conductor tools
  - conductor history

The orchestrator run is patched out, so no LLM endpoint or MCP server is needed.
"""
from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from agent_conductor.config.schema import AgentConfig, ConductorConfig, MCPServerConfig, ModelConfig
from agent_conductor.domain import (
    AgentResponse,
    Result,
    ToolCall,
    ToolDefinition,
    ToolErrorCodes,
    ToolExecution,
    ToolParameter,
)
from agent_conductor.infrastructure.memory import JsonFileLongTermMemory
from agent_conductor.infrastructure.tools import InProcessToolService, MCPToolService
from agent_conductor.interfaces.cli import app, build_tool_service

runner = CliRunner()


def _file_backend_config(monkeypatch, tmp_path) -> str:
    sessions = tmp_path / "sessions"
    path = tmp_path / "conductor.json"
    path.write_text(json.dumps({
        "models": {"reasoning": {"base_url": "http://localhost:11434/v1", "model": "test-model"}},
        "memory": {"backend": "file", "path": str(sessions)},
    }), encoding="utf-8")
    monkeypatch.setenv("CONDUCTOR_CONFIG_PATH", str(path))
    return str(sessions)


# ---------------------------------------------------------------------------
# conductor ask
# ---------------------------------------------------------------------------

def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("ask", "tools", "history"):
        assert command in result.output


def test_ask_help():
    result = runner.invoke(app, ["ask", "--help"])
    assert result.exit_code == 0
    assert "prompt" in result.output.lower()


def test_ask_success_prints_response():
    response = AgentResponse.create_success(
        "Found 3 files.",
        metadata={"session_id": "abc", "tool_executions": 1, "successful_executions": 1, "failed_executions": 0},
    )
    with patch("agent_conductor.interfaces.cli._ask", new=AsyncMock(return_value=Result.success(response))) as ask:
        result = runner.invoke(app, ["ask", "list the files", "--session", "abc"])

    assert result.exit_code == 0, result.output
    assert "Found 3 files." in result.output
    assert "Using model:" in result.output
    request = ask.await_args.args[1]
    assert request.content == "list the files"
    assert request.session_id == "abc"


def test_ask_error_response_exits_nonzero():
    error = Result.failure(ToolErrorCodes.SERVICE_UNAVAILABLE, "no servers").error
    response = AgentResponse.create_error(error, "tool catalog", metadata={"session_id": "abc"})
    with patch("agent_conductor.interfaces.cli._ask", new=AsyncMock(return_value=Result.success(response))):
        result = runner.invoke(app, ["ask", "list the files"])

    assert result.exit_code == 1
    assert "servers" in result.output


def test_ask_run_failure_exits_nonzero():
    failed = Result.failure("AGENT_UNKNOWN_ERROR", "boom")
    with patch("agent_conductor.interfaces.cli._ask", new=AsyncMock(return_value=failed)):
        result = runner.invoke(app, ["ask", "list the files"])

    assert result.exit_code == 1
    assert "Run failed" in result.output


def test_ask_blank_prompt_exits_before_running():
    with patch("agent_conductor.interfaces.cli._ask", new=AsyncMock()) as ask:
        result = runner.invoke(app, ["ask", "   "])

    assert result.exit_code == 1
    assert "must not be blank" in result.output
    ask.assert_not_awaited()


# ---------------------------------------------------------------------------
# conductor tools
# ---------------------------------------------------------------------------

def test_tools_empty_catalog():
    result = runner.invoke(app, ["tools"])
    assert result.exit_code == 0
    assert "No tools configured" in result.output


def test_tools_lists_catalog():
    service = InProcessToolService()
    service.register(
        ToolDefinition("grep", "Search files", {"pattern": ToolParameter("string", required=True)}),
        lambda pattern: pattern,
    )
    with patch("agent_conductor.interfaces.cli.build_tool_service", return_value=service):
        result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0
    assert "grep" in result.output
    assert "pattern*" in result.output


# ---------------------------------------------------------------------------
# conductor history
# ---------------------------------------------------------------------------

def test_history_requires_file_backend():
    result = runner.invoke(app, ["history", "abc"])
    assert result.exit_code == 1
    assert "file" in result.output


def test_history_unknown_session(monkeypatch, tmp_path):
    _file_backend_config(monkeypatch, tmp_path)
    result = runner.invoke(app, ["history", "nothing-here"])
    assert result.exit_code == 0
    assert "No history for session nothing-here" in result.output


def test_history_rejects_unsafe_session_id(monkeypatch, tmp_path):
    _file_backend_config(monkeypatch, tmp_path)
    result = runner.invoke(app, ["history", "../etc"])
    assert result.exit_code == 1


def test_history_shows_analytics(monkeypatch, tmp_path):
    sessions = _file_backend_config(monkeypatch, tmp_path)
    history = [
        ToolExecution.success(ToolCall("ls", session_id="s1"), "a.py b.py", duration_ms=12.0),
        ToolExecution.failure(
            ToolCall("cat", {"path": "x"}, session_id="s1"),
            ToolErrorCodes.RESOURCE_NOT_FOUND, "x does not exist", duration_ms=3.0,
        ),
    ]
    asyncio.run(JsonFileLongTermMemory(sessions).save_history("s1", history))

    result = runner.invoke(app, ["history", "s1"])

    assert result.exit_code == 0, result.output
    assert "Executions:" in result.output
    assert "1 ok, 1 failed" in result.output
    assert "ls" in result.output
    assert "cat" in result.output
    assert ToolErrorCodes.RESOURCE_NOT_FOUND in result.output


# ---------------------------------------------------------------------------
# build_tool_service
# ---------------------------------------------------------------------------

def _width_config(**kwargs) -> ConductorConfig:
    return ConductorConfig(
        models={"reasoning": ModelConfig(base_url="http://localhost:11434/v1", model="test-model")},
        agent=AgentConfig(max_concurrent_tool_executions=5),
        **kwargs,
    )


def test_build_tool_service_applies_configured_batch_width():
    inprocess = build_tool_service(_width_config())
    assert isinstance(inprocess, InProcessToolService)
    assert inprocess.max_concurrency == 5

    mcp = build_tool_service(_width_config(
        mcp_servers=[MCPServerConfig(name="fs", transport="stdio", command="npx", args=["-y", "server"])],
    ))
    assert isinstance(mcp, MCPToolService)
    assert mcp.max_concurrency == 5
