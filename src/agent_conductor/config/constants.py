"""Named constants for values that appear in multiple places or need explanation."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Orchestration loop
# ---------------------------------------------------------------------------

# Default cap on reason/act iterations per run.  Override with
# AgentConfig.max_iterations.
DEFAULT_MAX_ITERATIONS: int = 10

# Default width of ToolService.execute_tools_batch.
DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS: int = 3

# Number of recent AgentSession records the orchestrator keeps in memory.
DEFAULT_SESSION_HISTORY_LIMIT: int = 100

# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------

# Upper bound for a single backoff delay (2 minutes).
MAX_RETRY_DELAY_S: float = 120.0

# Attempts suggested by history analytics for each retry candidate.
DEFAULT_RETRY_MAX_ATTEMPTS: int = 3

# ---------------------------------------------------------------------------
# Guardrail
# ---------------------------------------------------------------------------

DEFAULT_MAX_INPUT_CHARS: int = 20_000
DEFAULT_MAX_OUTPUT_CHARS: int = 50_000

# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------

# Prior executions rendered into the next-step prompt (most recent kept).
DEFAULT_MAX_HISTORY_ENTRIES: int = 20

# Characters kept from a single tool payload when rendered into a prompt.
MAX_PAYLOAD_CHARS_IN_PROMPT: int = 4_000

# ---------------------------------------------------------------------------
# Timeouts
# ---------------------------------------------------------------------------

# Default HTTP read timeout for a single LLM chat-completions call when the
# client is built without a ModelConfig.
LLM_CHAT_DEFAULT_TIMEOUT_S: float = 120.0

# Default per-call timeout for MCP tool servers.
MCP_DEFAULT_TIMEOUT_S: float = 30.0
