"""Convert MCP tool definitions and call results into domain values."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, List, Optional, Tuple

from agent_conductor.domain import (
    BinaryPayload,
    DocumentPayload,
    TextPayload,
    ToolDefinition,
    ToolParameter,
    ToolPayload,
)


def _json_type(spec: Dict[str, Any]) -> str:
    raw = spec.get("type", "string")
    if isinstance(raw, list):
        non_null = [t for t in raw if t != "null"]
        return str(non_null[0]) if non_null else "null"
    return str(raw)


def mcp_tool_to_definition(prefixed_name: str, tool: Any) -> ToolDefinition:
    """Wrap an MCP ``Tool`` object (``.name``, ``.description``, ``.inputSchema``) as a ``ToolDefinition``.

    Only top-level JSON-schema properties are mapped; nested schemas are kept
    as their declared type.
    """
    schema = tool.inputSchema or {}
    properties: Dict[str, Any] = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    parameters: Dict[str, ToolParameter] = {}
    for name, spec in properties.items():
        spec = spec if isinstance(spec, dict) else {}
        parameters[name] = ToolParameter(
            type=_json_type(spec),
            description=spec.get("description", "") or "",
            required=name in required,
            default=spec.get("default"),
            allowed_values=tuple(spec.get("enum") or ()),
        )
    return ToolDefinition(
        name=prefixed_name,
        description=tool.description or "",
        parameters=parameters,
        categories=("mcp",),
    )


def _content_text(content: List[Any]) -> str:
    return "\n".join(getattr(c, "text", "") for c in content if getattr(c, "type", None) == "text")


def mcp_result_to_payload(result: Any) -> Tuple[bool, Optional[ToolPayload], str]:
    """Interpret a ``CallToolResult``.

    Returns ``(is_error, payload, error_message)``.  Structured content wins over
    text; a single image/blob item becomes a ``BinaryPayload``.
    """
    content = list(getattr(result, "content", None) or [])
    if getattr(result, "isError", False):
        return True, None, _content_text(content) or "unknown error"

    structured = getattr(result, "structuredContent", None)
    if isinstance(structured, dict):
        return False, DocumentPayload(structured), ""

    text = _content_text(content)
    if text:
        return False, TextPayload(text), ""

    for item in content:
        data = getattr(item, "data", None)
        if isinstance(data, str):
            try:
                raw = base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError):
                continue
            media_type = getattr(item, "mimeType", None) or "application/octet-stream"
            return False, BinaryPayload(raw, media_type=media_type), ""

    return False, None, ""
