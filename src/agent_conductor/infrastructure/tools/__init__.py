"""Tool services: in-process callables and MCP servers."""

from .base import BaseToolService
from .inprocess import InProcessToolService
from .mcp_service import MCPToolService
from .mcp_session import MCPSessionManager

__all__ = ["BaseToolService", "InProcessToolService", "MCPSessionManager", "MCPToolService"]
