"""Scripted stand-ins for the orchestrator ports.

Each fake records how it was called so tests can assert on call counts and
arguments without a live LLM, tool server or disk.
"""
from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from agent_conductor.domain import (
    ConfidenceLevel,
    IntentType,
    Result,
    ResultError,
    ToolCall,
    ToolDefinition,
    ToolExecution,
    ToolParameter,
    UserIntent,
    UserRequest,
)
from agent_conductor.infrastructure.tools import BaseToolService


def tool(name: str, **params: ToolParameter) -> ToolDefinition:
    return ToolDefinition(name=name, description=f"{name} tool", parameters=dict(params))


class ScriptedReasoning:
    """``ReasoningService`` that replays a fixed list of next steps.

    ``steps`` items may be a ``ToolCall``, ``None`` (done) or a ``Result``
    returned as-is.  Once the script is exhausted every further step is
    ``None``, unless ``repeat`` is set, in which case the last call repeats.
    """

    def __init__(
        self,
        steps: Sequence[Any] = (),
        *,
        intent_type: IntentType = IntentType.ANALYZE_CODE,
        synthesis: str = "All done.",
        intent_error: Optional[ResultError] = None,
        synthesis_error: Optional[ResultError] = None,
        repeat: bool = False,
    ) -> None:
        self.steps = list(steps)
        self.intent_type = intent_type
        self.synthesis = synthesis
        self.intent_error = intent_error
        self.synthesis_error = synthesis_error
        self.repeat = repeat
        self.calls: Counter = Counter()
        self.history_lengths: List[int] = []
        self.synthesized_with: List[ToolExecution] = []
        self.step_gate: Optional[asyncio.Event] = None

    async def analyze_intent(self, request: UserRequest) -> Result[UserIntent]:
        self.calls["analyze_intent"] += 1
        if self.intent_error is not None:
            return Result.from_error(self.intent_error)
        return Result.success(UserIntent(
            type=self.intent_type,
            original_request=request.content,
            confidence=ConfidenceLevel.HIGH,
            session_id=request.session_id,
        ))

    async def determine_next_step(
        self,
        intent: UserIntent,
        catalog: Sequence[ToolDefinition],
        history: Sequence[Result[ToolExecution]],
    ) -> Result[Optional[ToolCall]]:
        self.calls["determine_next_step"] += 1
        self.history_lengths.append(len(history))
        if self.step_gate is not None:
            await self.step_gate.wait()
        if not self.steps:
            return Result.success(None)
        item = self.steps[0] if self.repeat and len(self.steps) == 1 else self.steps.pop(0)
        if isinstance(item, Result):
            return item
        return Result.success(item)

    async def synthesize_response(
        self,
        intent: UserIntent,
        executions: Sequence[ToolExecution],
    ) -> Result[str]:
        self.calls["synthesize_response"] += 1
        self.synthesized_with = list(executions)
        if self.synthesis_error is not None:
            return Result.from_error(self.synthesis_error)
        return Result.success(self.synthesis)

    async def summarize_history(
        self,
        intent: UserIntent,
        history: Sequence[Result[ToolExecution]],
    ) -> Result[str]:
        self.calls["summarize_history"] += 1
        return Result.success(f"{len(history)} entries")


class RecordingTools(BaseToolService):
    """``ToolService`` returning canned outcomes per tool name.

    ``outcomes`` maps a tool name to a list of error codes (or ``None`` for
    success) consumed one per call; the last item repeats.
    """

    def __init__(
        self,
        catalog: Sequence[ToolDefinition] = (),
        outcomes: Optional[Dict[str, List[Optional[str]]]] = None,
        catalog_error: Optional[ResultError] = None,
    ) -> None:
        super().__init__()
        self.catalog = list(catalog)
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.catalog_error = catalog_error
        self.executed: List[ToolCall] = []
        self.list_calls = 0

    async def list_tools(self) -> Result[List[ToolDefinition]]:
        self.list_calls += 1
        if self.catalog_error is not None:
            return Result.from_error(self.catalog_error)
        return Result.success(list(self.catalog))

    async def execute_tool(self, call: ToolCall) -> Result[ToolExecution]:
        self.executed.append(call)
        script = self.outcomes.get(call.tool_name) or [None]
        code = script.pop(0) if len(script) > 1 else script[0]
        if code is None:
            return ToolExecution.success(call, f"{call.tool_name} ok", duration_ms=5.0)
        return ToolExecution.failure(call, code, f"{call.tool_name} failed", duration_ms=5.0)


class ExplodingMemory:
    """``LongTermMemory`` whose load or save raises."""

    def __init__(self, *, fail_load: bool = False, fail_save: bool = False) -> None:
        self.fail_load = fail_load
        self.fail_save = fail_save
        self.saved: Dict[str, List[Result[ToolExecution]]] = {}

    async def load_history(self, session_id: str) -> List[Result[ToolExecution]]:
        if self.fail_load:
            raise OSError("disk unavailable")
        return list(self.saved.get(session_id, []))

    async def save_history(self, session_id: str, history: Sequence[Result[ToolExecution]]) -> None:
        if self.fail_save:
            raise OSError("disk full")
        self.saved[session_id] = list(history)
