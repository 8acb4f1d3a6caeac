"""Response parser for OpenAI chat-completions responses."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from agent_conductor.domain import LLMResponse, ToolCallRequest


def parse_chat_response(data: Dict[str, Any]) -> LLMResponse:
    """Parse an OpenAI-format chat completions response dict into ``LLMResponse``.

    Raises:
        ValueError: The response has no choices or no message.
    """
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0].get("message"), dict):
        raise ValueError("Chat response contains no choices/message")
    message = choices[0]["message"]
    content: Optional[str] = message.get("content")

    tool_calls: List[ToolCallRequest] = []
    for i, tc in enumerate(message.get("tool_calls") or []):
        call_id: str = tc.get("id") or f"call_{i}"
        fn = tc.get("function") or {}
        name: str = fn.get("name") or ""
        raw_args = fn.get("arguments") or "{}"
        if isinstance(raw_args, dict):
            arguments: Dict[str, Any] = raw_args
        else:
            try:
                arguments = json.loads(raw_args)
            except json.JSONDecodeError:
                arguments = {"_raw": raw_args}
            if not isinstance(arguments, dict):
                arguments = {"_raw": raw_args}
        tool_calls.append(ToolCallRequest(call_id=call_id, tool_name=name, arguments=arguments))

    return LLMResponse(content=content, tool_calls=tool_calls)
