"""One live connection to an MCP server, owned by ``MCPToolService``."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Tuple

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters, stdio_client

from agent_conductor.config.schema import MCPServerConfig
from agent_conductor.domain import ToolDefinition

from .mcp_converter import mcp_tool_to_definition

logger = logging.getLogger(__name__)


class MCPSessionManager:
    """Transport plus ``ClientSession`` for a single configured server.

    Tools are exposed as ``mcp__<server>__<tool>`` so servers never collide in
    the catalog; ``call_tool`` strips the prefix before forwarding.  The
    transport and session live on an ``AsyncExitStack`` so ``disconnect()``
    (or a failed ``connect()``) tears down both, including a stdio child
    process.
    """

    def __init__(self, config: MCPServerConfig) -> None:
        self._config = config
        self._session: Any = None
        self._stack = AsyncExitStack()

    @property
    def config(self) -> MCPServerConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def prefix(self) -> str:
        return f"mcp__{self._config.name}__"

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    def owns_tool(self, name: str) -> bool:
        return name.startswith(self.prefix)

    async def _open_transport(self) -> Tuple[Any, Any]:
        cfg = self._config
        if cfg.transport == "stdio":
            params = StdioServerParameters(command=cfg.command, args=cfg.args, env=cfg.env)
            return await self._stack.enter_async_context(stdio_client(params))
        return await self._stack.enter_async_context(sse_client(cfg.url, headers=cfg.headers))

    async def connect(self) -> None:
        """Start the transport and run the MCP ``initialize`` handshake.  No-op when connected."""
        if self.is_connected:
            return
        try:
            read, write = await self._open_transport()
            session = await self._stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except BaseException:
            await self._reset()
            raise
        self._session = session
        logger.debug("Connected to MCP server %r (transport=%s)", self.name, self._config.transport)

    async def disconnect(self) -> None:
        await self._reset()
        logger.debug("Disconnected from MCP server %r", self.name)

    async def _reset(self) -> None:
        stack, self._stack = self._stack, AsyncExitStack()
        self._session = None
        await stack.aclose()

    def _require_session(self) -> Any:
        if self._session is None:
            raise ConnectionError(f"MCP server {self.name!r} is not connected")
        return self._session

    async def list_tools(self) -> List[ToolDefinition]:
        result = await self._require_session().list_tools()
        return [mcp_tool_to_definition(f"{self.prefix}{tool.name}", tool) for tool in result.tools]

    async def call_tool(self, tool_name: str, args: Dict[str, Any]) -> Any:
        """Forward a prefixed call and return the raw ``CallToolResult``."""
        if not self.owns_tool(tool_name):
            raise ValueError(f"Tool {tool_name!r} does not belong to MCP server {self.name!r}")
        return await self._require_session().call_tool(tool_name[len(self.prefix):], args)
