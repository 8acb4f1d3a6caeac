"""Configuration schema. Defaults point at a local OpenAI-compatible endpoint; any backend works via base_url + model."""

from __future__ import annotations

import re
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS,
    DEFAULT_MAX_INPUT_CHARS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_OUTPUT_CHARS,
    DEFAULT_SESSION_HISTORY_LIMIT,
    MCP_DEFAULT_TIMEOUT_S,
)


class MCPServerConfig(BaseModel):
    """Configuration for one MCP (Model Context Protocol) tool server.

    Tools exposed by each server are merged into the tool catalog as
    ``mcp__<name>__<tool>`` and dispatched through that server's session.
    """

    name: str = Field(..., description="Server name, used as tool prefix: mcp__<name>__<tool>.")
    transport: Literal["stdio", "sse"] = Field("stdio", description="Transport type: 'stdio' or 'sse'.")
    # stdio fields
    command: Optional[str] = Field(None, description="Executable to launch (stdio transport).")
    args: List[str] = Field(default_factory=list, description="Arguments for the command.")
    env: Optional[Dict[str, str]] = Field(None, description="Environment variables for the subprocess.")
    # sse fields
    url: Optional[str] = Field(None, description="SSE endpoint URL (sse transport).")
    headers: Dict[str, str] = Field(default_factory=dict, description="HTTP headers for SSE transport.")
    timeout_s: float = Field(MCP_DEFAULT_TIMEOUT_S, gt=0, description="Timeout in seconds for one MCP tool call.")

    @model_validator(mode="after")
    def _check_transport_fields(self) -> "MCPServerConfig":
        if self.transport == "stdio" and not self.command:
            raise ValueError(
                f"MCPServerConfig {self.name!r}: transport='stdio' requires 'command' to be set."
            )
        if self.transport == "sse" and not self.url:
            raise ValueError(
                f"MCPServerConfig {self.name!r}: transport='sse' requires 'url' to be set."
            )
        return self


class ModelConfig(BaseModel):
    """LLM endpoint and model name (OpenAI chat-completions API)."""
    base_url: str = Field(..., description="e.g. http://localhost:11434/v1 or https://api.openai.com/v1")
    model: str = Field(..., description="Model name as understood by the server.")
    api_key: str = Field("", description="Bearer token; empty for local backends (no header sent), set for cloud.")
    backend: Literal["generic"] = Field(
        "generic",
        description="LLM client backend. 'generic': OpenAI-compatible chat-completions client.",
    )
    temperature: float = 0.1
    top_p: float = 0.9
    max_tokens: int = 2048
    timeout_s: float = Field(default=120.0, gt=0, description="HTTP timeout for one chat request.")


class AgentConfig(BaseModel):
    """Orchestration loop limits."""
    max_iterations: int = Field(
        DEFAULT_MAX_ITERATIONS, ge=1,
        description="Maximum reason/act iterations per run.",
    )
    max_tool_retries: int = Field(
        0, ge=0,
        description=(
            "Extra attempts for a retryable tool failure inside one iteration. "
            "0 (default) records the failure and moves on to the next reasoning step."
        ),
    )
    max_concurrent_tool_executions: int = Field(
        DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS, ge=1,
        description="Width of ToolService.execute_tools_batch.",
    )
    serialize_session_runs: bool = Field(
        False,
        description=(
            "If True, runs that share a session id are serialized with a per-session lock. "
            "If False (default), concurrent runs on one session are last-writer-wins."
        ),
    )
    session_history_limit: int = Field(
        DEFAULT_SESSION_HISTORY_LIMIT, ge=1,
        description="Number of recent AgentSession records kept for get_session_history().",
    )


class GuardrailConfig(BaseModel):
    """Input, action and output policy."""
    blocked_tools: List[str] = Field(
        default_factory=list,
        description="Tool names that may never be executed (case-insensitive exact match).",
    )
    max_input_chars: int = Field(DEFAULT_MAX_INPUT_CHARS, ge=1)
    blocked_input_patterns: List[str] = Field(
        default_factory=list,
        description="Regular expressions; input matching any of them is rejected.",
    )
    max_output_chars: int = Field(DEFAULT_MAX_OUTPUT_CHARS, ge=1)
    blocked_output_patterns: List[str] = Field(
        default_factory=list,
        description="Regular expressions; a final response matching any of them is rejected.",
    )

    @field_validator("blocked_input_patterns", "blocked_output_patterns")
    @classmethod
    def _patterns_compile(cls, patterns: List[str]) -> List[str]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid guardrail pattern {pattern!r}: {exc}") from exc
        return patterns


class MemoryConfig(BaseModel):
    """Where execution history is persisted between runs."""
    backend: Literal["memory", "file"] = Field(
        "memory",
        description="'memory' (process lifetime only) or 'file' (one JSON file per session under 'path').",
    )
    path: str = Field(".conductor/sessions", description="Directory for the 'file' backend.")


class TelemetryConfig(BaseModel):
    """Optional OpenTelemetry tracing configuration."""
    enabled: bool = False
    service_name: str = "agent-conductor"
    exporter: str = Field(
        "none",
        description="Span exporter: 'none' (default), 'console' (stdout), or 'otlp' (gRPC endpoint).",
    )
    otlp_endpoint: str = Field(
        "",
        description="OTLP gRPC endpoint, e.g. 'http://localhost:4317'. Required when exporter='otlp'.",
    )


class ConductorConfig(BaseModel):
    """Root config: models, loop limits, policy, memory and tool servers."""
    models: Dict[str, ModelConfig]
    reasoning_model_key: str = Field(
        "reasoning",
        description="Key into 'models' used by the reasoning service.",
    )
    agent: AgentConfig = Field(default_factory=AgentConfig)
    guardrail: GuardrailConfig = Field(default_factory=GuardrailConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    mcp_servers: List[MCPServerConfig] = Field(
        default_factory=list,
        description="MCP tool servers whose tools make up the tool catalog.",
    )
    telemetry: Optional[TelemetryConfig] = None

    @model_validator(mode="after")
    def _check_references(self) -> "ConductorConfig":
        if self.reasoning_model_key not in self.models:
            raise ValueError(
                f"reasoning_model_key {self.reasoning_model_key!r} not found in models "
                f"(available: {sorted(self.models)})."
            )
        names = [s.name for s in self.mcp_servers]
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(
                f"Duplicate MCP server names: {duplicates}. "
                "Each MCP server must have a unique 'name'."
            )
        return self

    @property
    def reasoning_model(self) -> ModelConfig:
        return self.models[self.reasoning_model_key]


# Default: OpenAI-compatible server on localhost:11434 (e.g. Ollama)
DEFAULT_CONFIG = ConductorConfig(
    models={
        "reasoning": ModelConfig(
            base_url="http://localhost:11434/v1",
            model="qwen2.5:7b",
            temperature=0.1,
            max_tokens=2048,
        ),
    },
)
