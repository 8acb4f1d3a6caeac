"""Configuration: schema, loading from env/file, and shared constants."""

from .schema import (
    DEFAULT_CONFIG,
    AgentConfig,
    ConductorConfig,
    GuardrailConfig,
    MCPServerConfig,
    MemoryConfig,
    ModelConfig,
    TelemetryConfig,
)
from .loader import load_config
from .constants import (
    DEFAULT_MAX_ITERATIONS,
    LLM_CHAT_DEFAULT_TIMEOUT_S,
    MAX_RETRY_DELAY_S,
    MCP_DEFAULT_TIMEOUT_S,
)

get_config = load_config  # alias

__all__ = [
    "DEFAULT_CONFIG", "AgentConfig", "ConductorConfig", "GuardrailConfig",
    "MCPServerConfig", "MemoryConfig", "ModelConfig", "TelemetryConfig",
    "load_config", "get_config",
    "DEFAULT_MAX_ITERATIONS", "LLM_CHAT_DEFAULT_TIMEOUT_S",
    "MAX_RETRY_DELAY_S", "MCP_DEFAULT_TIMEOUT_S",
]
