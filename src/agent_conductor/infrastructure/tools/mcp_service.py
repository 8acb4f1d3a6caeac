"""Tool service over one or more MCP servers.

The catalog is the union of every configured server's tools, each prefixed
``mcp__<server>__``.  Calls are dispatched to the owning server with the
server's ``timeout_s`` enforced by ``asyncio.wait_for``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from agent_conductor.config.constants import DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS
from agent_conductor.config.schema import MCPServerConfig
from agent_conductor.domain import Result, ToolCall, ToolDefinition, ToolErrorCodes, ToolExecution

from .base import BaseToolService
from .mcp_converter import mcp_result_to_payload
from .mcp_session import MCPSessionManager

logger = logging.getLogger(__name__)

SessionFactory = Callable[[MCPServerConfig], MCPSessionManager]


class MCPToolService(BaseToolService):
    """``ToolService`` that proxies MCP servers.

    Connections are opened lazily on first use; call ``aclose()`` (or use
    ``async with``) to terminate server processes.
    """

    def __init__(
        self,
        servers: Sequence[MCPServerConfig],
        session_factory: SessionFactory = MCPSessionManager,
        max_concurrency: int = DEFAULT_MAX_CONCURRENT_TOOL_EXECUTIONS,
    ) -> None:
        super().__init__(max_concurrency)
        self._managers: List[MCPSessionManager] = [session_factory(cfg) for cfg in servers]
        self._catalog: Optional[Dict[str, ToolDefinition]] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "MCPToolService":
        await self.aopen()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aopen(self) -> None:
        for mgr in self._managers:
            if not mgr.is_connected:
                await asyncio.wait_for(mgr.connect(), timeout=mgr.config.timeout_s)

    async def aclose(self) -> None:
        for mgr in self._managers:
            if mgr.is_connected:
                try:
                    await mgr.disconnect()
                except Exception as exc:
                    logger.warning("Error disconnecting MCP server %r: %s", mgr.name, exc)
        self._catalog = None

    async def _load_catalog(self) -> Dict[str, ToolDefinition]:
        async with self._lock:
            if self._catalog is None:
                await self.aopen()
                catalog: Dict[str, ToolDefinition] = {}
                for mgr in self._managers:
                    for definition in await asyncio.wait_for(mgr.list_tools(), timeout=mgr.config.timeout_s):
                        catalog[definition.name] = definition
                logger.debug("MCP catalog: %d tools from %d servers", len(catalog), len(self._managers))
                self._catalog = catalog
            return self._catalog

    async def list_tools(self) -> Result[List[ToolDefinition]]:
        try:
            catalog = await self._load_catalog()
        except (asyncio.TimeoutError, TimeoutError) as exc:
            logger.warning("Timed out loading MCP tool catalog: %s", exc)
            return Result.failure(
                ToolErrorCodes.CONNECTION_TIMEOUT,
                "Timed out connecting to MCP servers",
                {"servers": [m.name for m in self._managers]},
            )
        except Exception as exc:
            logger.warning("Failed to load MCP tool catalog: %s", exc)
            return Result.failure(
                ToolErrorCodes.SERVICE_UNAVAILABLE,
                f"Could not load MCP tool catalog: {exc}",
                {"servers": [m.name for m in self._managers], "exception_type": type(exc).__name__},
            )
        return Result.success(list(catalog.values()))

    def _owner(self, tool_name: str) -> Optional[MCPSessionManager]:
        for mgr in self._managers:
            if mgr.owns_tool(tool_name):
                return mgr
        return None

    async def execute_tool(self, call: ToolCall) -> Result[ToolExecution]:
        mgr = self._owner(call.tool_name)
        if mgr is None:
            return ToolExecution.failure(
                call, ToolErrorCodes.TOOL_NOT_FOUND, f"No MCP server provides tool '{call.tool_name}'",
            )

        arguments = dict(call.arguments)
        definition = (self._catalog or {}).get(call.tool_name)
        if definition is not None:
            validated = definition.validate_arguments(arguments)
            if validated.is_failure:
                return ToolExecution.failure(
                    call, validated.error.code, validated.error.message, metadata=validated.error.metadata,
                )
            arguments = validated.value

        meta = {"server": mgr.name}
        started = time.perf_counter()
        try:
            if not mgr.is_connected:
                await asyncio.wait_for(mgr.connect(), timeout=mgr.config.timeout_s)
            result = await asyncio.wait_for(mgr.call_tool(call.tool_name, arguments), timeout=mgr.config.timeout_s)
        except (asyncio.TimeoutError, TimeoutError):
            duration_ms = (time.perf_counter() - started) * 1000.0
            return ToolExecution.failure(
                call,
                ToolErrorCodes.EXECUTION_TIMEOUT,
                f"Tool '{call.tool_name}' exceeded {mgr.config.timeout_s}s",
                duration_ms=duration_ms,
                metadata=meta,
            )
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000.0
            logger.warning("MCP call %s on %r raised %s", call.tool_name, mgr.name, exc)
            return ToolExecution.from_exception(call, exc, duration_ms=duration_ms, metadata=meta)
        duration_ms = (time.perf_counter() - started) * 1000.0

        is_error, payload, message = mcp_result_to_payload(result)
        if is_error:
            logger.warning(
                "MCP tool %r on server %r returned isError=True: %s", call.tool_name, mgr.name, message,
            )
            return ToolExecution.failure(
                call, ToolErrorCodes.EXECUTION_FAILED, message, duration_ms=duration_ms, metadata=meta,
            )
        return ToolExecution.success(call, payload, duration_ms=duration_ms, metadata=meta)
