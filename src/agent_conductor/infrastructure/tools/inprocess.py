"""In-process tool service: Python callables registered with a ``ToolDefinition``.

Handlers may be sync or async and receive the validated arguments as keyword
arguments.  Their return value becomes the execution payload (str, dict/list,
bytes or None); exceptions are mapped to tool error codes.

Usage::

    tools = InProcessToolService()
    tools.register(
        ToolDefinition("read_file", "Read a file", {"path": ToolParameter("string", required=True)}),
        lambda path: Path(path).read_text(),
    )
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Set

from agent_conductor.config.constants import DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS
from agent_conductor.domain import Result, ToolCall, ToolDefinition, ToolErrorCodes, ToolExecution

from .base import BaseToolService

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Any]


class InProcessToolService(BaseToolService):
    """``ToolService`` backed by registered Python callables."""

    def __init__(
        self,
        timeout_s: Optional[float] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS,
    ) -> None:
        super().__init__(max_concurrency)
        self._definitions: Dict[str, ToolDefinition] = {}
        self._handlers: Dict[str, ToolHandler] = {}
        self._disabled: Set[str] = set()
        self._timeout_s = timeout_s

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        if definition.name in self._definitions:
            raise ValueError(f"Tool {definition.name!r} is already registered")
        self._definitions[definition.name] = definition
        self._handlers[definition.name] = handler

    def disable(self, name: str) -> None:
        self._disabled.add(name)

    def enable(self, name: str) -> None:
        self._disabled.discard(name)

    async def list_tools(self) -> Result[List[ToolDefinition]]:
        return Result.success([d for n, d in self._definitions.items() if n not in self._disabled])

    async def execute_tool(self, call: ToolCall) -> Result[ToolExecution]:
        definition = self._definitions.get(call.tool_name)
        if definition is None:
            return ToolExecution.failure(
                call, ToolErrorCodes.TOOL_NOT_FOUND, f"Tool '{call.tool_name}' is not registered",
            )
        if call.tool_name in self._disabled:
            return ToolExecution.failure(
                call, ToolErrorCodes.TOOL_DISABLED, f"Tool '{call.tool_name}' is disabled",
            )

        validated = definition.validate_arguments(call.arguments)
        if validated.is_failure:
            return ToolExecution.failure(
                call, validated.error.code, validated.error.message, metadata=validated.error.metadata,
            )

        handler = self._handlers[call.tool_name]
        started = time.perf_counter()
        try:
            value = await self._invoke(handler, validated.value)
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000.0
            logger.debug("Tool %s raised %s", call.tool_name, type(exc).__name__)
            return ToolExecution.from_exception(call, exc, duration_ms=duration_ms)
        duration_ms = (time.perf_counter() - started) * 1000.0

        try:
            return ToolExecution.success(call, value, duration_ms=duration_ms)
        except TypeError as exc:
            return ToolExecution.failure(
                call, ToolErrorCodes.UNSUPPORTED_DATA_FORMAT, str(exc), duration_ms=duration_ms,
            )

    async def _invoke(self, handler: ToolHandler, arguments: Dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(handler):
            coro = handler(**arguments)
        else:
            coro = asyncio.to_thread(handler, **arguments)
        if self._timeout_s is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=self._timeout_s)
