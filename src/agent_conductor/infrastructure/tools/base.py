"""Shared behaviour for ``ToolService`` implementations."""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import List, Optional, Sequence

from agent_conductor.config.constants import DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS
from agent_conductor.domain import AgentErrorCodes, Result, ToolCall, ToolDefinition, ToolExecution

logger = logging.getLogger(__name__)


class BaseToolService(abc.ABC):
    """Provides ``execute_tools_batch`` on top of a subclass's ``execute_tool``.

    ``max_concurrency`` is the batch width used when a caller does not pass
    one; services built from config get ``agent.max_concurrent_tool_executions``.
    """

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._max_concurrency = max_concurrency

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @abc.abstractmethod
    async def list_tools(self) -> Result[List[ToolDefinition]]:
        ...

    @abc.abstractmethod
    async def execute_tool(self, call: ToolCall) -> Result[ToolExecution]:
        ...

    async def execute_tools_batch(
        self,
        calls: Sequence[ToolCall],
        max_concurrency: Optional[int] = None,
    ) -> Result[List[ToolExecution]]:
        """Execute ``calls`` with at most ``max_concurrency`` in flight.

        Results keep input order.  If any call fails, the batch fails with the
        first failing call's error (by input position); its metadata gains
        ``completed_executions``, the number of calls that succeeded.
        """
        width = self._max_concurrency if max_concurrency is None else max_concurrency
        if width < 1:
            return Result.failure(
                AgentErrorCodes.VALIDATION_FAILED,
                f"max_concurrency must be >= 1, got {width}",
            )
        if not calls:
            return Result.success([])

        semaphore = asyncio.Semaphore(width)

        async def _one(call: ToolCall) -> Result[ToolExecution]:
            async with semaphore:
                return await self.execute_tool(call)

        outcomes = await asyncio.gather(*(_one(c) for c in calls))
        completed = sum(1 for o in outcomes if o.is_success)
        logger.debug("Batch of %d calls (width %d): %d succeeded", len(calls), width, completed)
        for outcome in outcomes:
            if outcome.is_failure:
                return Result.from_error(outcome.error.with_metadata(completed_executions=completed))
        return Result.success([o.value for o in outcomes])
