"""Ports (abstract interfaces) used by the application layer.

Each port is a ``Protocol`` so the orchestrator depends only on the *shape* of
the collaborator, not on a concrete implementation.  Infrastructure adapters
must satisfy these shapes; the application never imports from infrastructure.

Every operation that can fail in an expected way returns a ``Result``; adapters
translate library exceptions into error codes at their own boundary.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from agent_conductor.domain import (
    LLMResponse,
    Result,
    ToolCall,
    ToolDefinition,
    ToolExecution,
    UserIntent,
    UserRequest,
)


class ChatClient(Protocol):
    """LLM chat interface (OpenAI chat-completions API).

    ``tools`` is a list of OpenAI-format function tool definitions.  When provided
    the LLM may respond with ``tool_calls`` (native function calling) rather than
    plain text.  ``tool_choice`` (OpenAI format) narrows which tool it may call.
    """

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Any] = None,
        temperature: float = 0.1,
        top_p: float = 0.9,
        max_tokens: int = 2048,
    ) -> LLMResponse: ...


class ReasoningService(Protocol):
    """Intent analysis, next-step selection and answer synthesis."""

    async def analyze_intent(self, request: UserRequest) -> Result[UserIntent]: ...

    async def determine_next_step(
        self,
        intent: UserIntent,
        catalog: Sequence[ToolDefinition],
        history: Sequence[Result[ToolExecution]],
    ) -> Result[Optional[ToolCall]]:
        """Return the next ``ToolCall``, or ``None`` when no further tool is needed."""
        ...

    async def synthesize_response(
        self,
        intent: UserIntent,
        executions: Sequence[ToolExecution],
    ) -> Result[str]: ...

    async def summarize_history(
        self,
        intent: UserIntent,
        history: Sequence[Result[ToolExecution]],
    ) -> Result[str]: ...


class ToolService(Protocol):
    """Tool catalog and invocation transport."""

    async def list_tools(self) -> Result[List[ToolDefinition]]: ...

    async def execute_tool(self, call: ToolCall) -> Result[ToolExecution]: ...

    async def execute_tools_batch(
        self,
        calls: Sequence[ToolCall],
        max_concurrency: Optional[int] = None,
    ) -> Result[List[ToolExecution]]:
        """Run ``calls`` with at most ``max_concurrency`` in flight; results keep input order.

        ``None`` means the service's configured width.
        """
        ...


class LongTermMemory(Protocol):
    """Session-keyed persistence of execution history.

    ``save_history`` atomically replaces the stored history of a session.
    Both operations may raise; the orchestrator maps exceptions to
    ``AGENT_HISTORY_LOAD_FAILED`` / ``AGENT_HISTORY_SAVE_FAILED``.
    """

    async def load_history(self, session_id: str) -> List[Result[ToolExecution]]: ...

    async def save_history(
        self,
        session_id: str,
        history: Sequence[Result[ToolExecution]],
    ) -> None: ...


class Guardrail(Protocol):
    """Safety gate applied at input, action and output boundaries."""

    async def validate_input(self, text: str) -> Result[str]:
        """Return the sanitised input, or ``GUARDRAIL_INPUT_REJECTED``."""
        ...

    async def is_action_allowed(self, call: ToolCall) -> Result[bool]:
        """Return ``True``, or ``GUARDRAIL_ACTION_BLOCKED``."""
        ...

    async def validate_output(self, text: str) -> Result[str]: ...
