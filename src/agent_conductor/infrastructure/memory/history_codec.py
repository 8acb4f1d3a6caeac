"""JSON-safe encoding of ``Result[ToolExecution]`` histories.

Each entry becomes ``{"ok": true, "execution": {...}}`` or
``{"ok": false, "error": {...}}``.  Binary payloads are base64 encoded.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Sequence

from agent_conductor.domain import (
    Result,
    ResultError,
    ToolCall,
    ToolExecution,
    payload_from_dict,
)

FORMAT_VERSION = 1


def encode_entry(entry: Result[ToolExecution]) -> Dict[str, Any]:
    if entry.is_failure:
        return {"ok": False, "error": entry.error.to_dict()}
    execution = entry.value
    return {
        "ok": True,
        "execution": {
            "tool_call": execution.tool_call.to_dict(),
            "duration_ms": execution.duration_ms,
            "completed_at": execution.completed_at.isoformat(),
            "payload": execution.payload.to_dict() if execution.payload is not None else None,
            "metadata": dict(execution.metadata),
        },
    }


def decode_entry(data: Dict[str, Any]) -> Result[ToolExecution]:
    if not data.get("ok"):
        return Result.from_error(ResultError.from_dict(data["error"]))
    raw = data["execution"]
    return Result.success(ToolExecution(
        tool_call=ToolCall.from_dict(raw["tool_call"]),
        duration_ms=float(raw.get("duration_ms", 0.0)),
        completed_at=datetime.fromisoformat(raw["completed_at"]),
        payload=payload_from_dict(raw.get("payload")),
        metadata=dict(raw.get("metadata") or {}),
    ))


def encode_history(session_id: str, history: Sequence[Result[ToolExecution]]) -> Dict[str, Any]:
    return {
        "version": FORMAT_VERSION,
        "session_id": session_id,
        "entries": [encode_entry(e) for e in history],
    }


def decode_history(data: Dict[str, Any]) -> List[Result[ToolExecution]]:
    version = data.get("version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported history format version: {version!r}")
    return [decode_entry(e) for e in data.get("entries", [])]
