"""LLM-backed reasoning service over an OpenAI-compatible ``ChatClient``.

- ``analyze_intent``: one ``classify_intent`` function call; falls back to a
  JSON object in the text reply, then to keyword classification (LOW confidence).
- ``determine_next_step``: the catalog is offered as function tools; the first
  tool call becomes the next ``ToolCall``, a plain-text reply means done.
- ``synthesize_response`` / ``summarize_history``: plain completions.

Chat-client exceptions are mapped to ``LLM_*`` codes and returned as failures.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from agent_conductor.application.json_parsing import extract_json_object
from agent_conductor.application.ports import ChatClient
from agent_conductor.config.constants import (
    DEFAULT_MAX_HISTORY_ENTRIES,
    MAX_PAYLOAD_CHARS_IN_PROMPT,
)
from agent_conductor.config.schema import ModelConfig
from agent_conductor.domain import (
    ConfidenceLevel,
    IntentType,
    LLMErrorCodes,
    LLMResponse,
    Result,
    ToolCall,
    ToolDefinition,
    ToolExecution,
    UserIntent,
    UserRequest,
)
from agent_conductor.infrastructure.chat.generic import force_function
from agent_conductor.infrastructure.reasoning.errors import llm_failure
from agent_conductor.infrastructure.reasoning.prompts import (
    CLASSIFY_INTENT_TOOL,
    INTENT_KEYWORDS,
    SYSTEM_PROMPT_INTENT,
    SYSTEM_PROMPT_NEXT_STEP,
    SYSTEM_PROMPT_SUMMARY,
    SYSTEM_PROMPT_SYNTHESIS,
    classify_intent_tool_def,
    tools_to_openai,
)

logger = logging.getLogger(__name__)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"... [truncated {len(text) - limit} chars]"


def keyword_intent(text: str) -> IntentType:
    """Classify by keyword; first matching intent in ``INTENT_KEYWORDS`` order wins."""
    lowered = text.lower()
    for intent_type, keywords in INTENT_KEYWORDS.items():
        if any(kw in lowered for kw in keywords):
            return intent_type
    return IntentType.OTHER


def render_history(history: Sequence[Result[ToolExecution]], max_entries: int) -> str:
    """Render the most recent ``max_entries`` history entries as numbered lines."""
    if not history:
        return "No tools have been executed yet."
    skipped = max(0, len(history) - max_entries)
    lines: List[str] = []
    if skipped:
        lines.append(f"({skipped} earlier entries omitted)")
    for i, entry in enumerate(history[skipped:], start=skipped + 1):
        if entry.is_success:
            execution = entry.value
            args = json.dumps(execution.tool_call.arguments, ensure_ascii=False, sort_keys=True, default=str)
            result = _truncate(execution.result_text(), MAX_PAYLOAD_CHARS_IN_PROMPT)
            lines.append(f"{i}. {execution.tool_name}({args}) -> OK: {result}")
        else:
            error = entry.error
            tool = error.metadata.get("tool_name") or "unknown"
            lines.append(f"{i}. {tool} -> FAILED [{error.code}]: {error.message}")
    return "\n".join(lines)


class LLMReasoningService:
    """``ReasoningService`` implementation that prompts a chat model."""

    def __init__(
        self,
        chat_client: ChatClient,
        model_config: ModelConfig,
        max_history_entries: int = DEFAULT_MAX_HISTORY_ENTRIES,
    ) -> None:
        self._chat = chat_client
        self._model = model_config
        self._max_history_entries = max_history_entries

    async def _complete(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Any] = None,
    ) -> LLMResponse:
        return await self._chat.chat(
            messages,
            self._model.model,
            tools=tools,
            tool_choice=tool_choice,
            temperature=self._model.temperature,
            top_p=self._model.top_p,
            max_tokens=self._model.max_tokens,
        )

    # ------------------------------------------------------------------
    # Intent
    # ------------------------------------------------------------------

    async def analyze_intent(self, request: UserRequest) -> Result[UserIntent]:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT_INTENT},
            {"role": "user", "content": request.content},
        ]
        try:
            response = await self._complete(
                messages,
                tools=[classify_intent_tool_def()],
                tool_choice=force_function(CLASSIFY_INTENT_TOOL),
            )
        except Exception as exc:
            logger.warning("Intent analysis call failed: %s", exc)
            return llm_failure(exc, "analyze_intent")

        raw: Optional[Dict[str, Any]] = None
        for tc in response.tool_calls:
            if tc.tool_name == CLASSIFY_INTENT_TOOL:
                raw = tc.arguments
                break
        if raw is None and response.content:
            raw = extract_json_object(response.content)

        if raw is None or "intent" not in raw:
            intent_type = keyword_intent(request.content)
            logger.info("No usable intent classification from model; keyword fallback -> %s", intent_type.value)
            return Result.success(UserIntent(
                type=intent_type,
                original_request=request.content,
                confidence=ConfidenceLevel.LOW,
                session_id=request.session_id,
            ))

        parameters = raw.get("parameters")
        return Result.success(UserIntent(
            type=IntentType.parse(raw.get("intent")),
            original_request=request.content,
            confidence=ConfidenceLevel.parse(raw.get("confidence")),
            parameters=dict(parameters) if isinstance(parameters, dict) else {},
            session_id=request.session_id,
        ))

    # ------------------------------------------------------------------
    # Next step
    # ------------------------------------------------------------------

    async def determine_next_step(
        self,
        intent: UserIntent,
        catalog: Sequence[ToolDefinition],
        history: Sequence[Result[ToolExecution]],
    ) -> Result[Optional[ToolCall]]:
        if not catalog:
            logger.debug("Empty tool catalog; nothing to execute")
            return Result.success(None)

        user_prompt = (
            f"## Goal\n{intent.original_request}\n\n"
            f"## Intent\n{intent.type.value} (confidence: {intent.confidence.value})\n\n"
            f"## Execution history\n{render_history(history, self._max_history_entries)}\n\n"
            "Choose the next tool call, or reply in plain text if the goal is complete."
        )
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT_NEXT_STEP},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = await self._complete(messages, tools=tools_to_openai(catalog))
        except Exception as exc:
            logger.warning("Next-step call failed: %s", exc)
            return llm_failure(exc, "determine_next_step")

        if not response.tool_calls:
            logger.debug("Model replied without a tool call; treating as done")
            return Result.success(None)

        tc = response.tool_calls[0]
        if len(response.tool_calls) > 1:
            logger.debug("Model proposed %d tool calls; using the first", len(response.tool_calls))
        if not tc.tool_name:
            return Result.failure(
                LLMErrorCodes.INVALID_RESPONSE,
                "Model returned a tool call without a name",
                {"operation": "determine_next_step"},
            )
        return Result.success(ToolCall(
            tool_name=tc.tool_name,
            arguments=dict(tc.arguments),
            session_id=intent.session_id,
            order=len(history),
        ))

    # ------------------------------------------------------------------
    # Synthesis and summary
    # ------------------------------------------------------------------

    async def _text(self, system: str, user: str, operation: str) -> Result[str]:
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        try:
            response = await self._complete(messages)
        except Exception as exc:
            logger.warning("%s call failed: %s", operation, exc)
            return llm_failure(exc, operation)
        content = (response.content or "").strip()
        if not content:
            return Result.failure(
                LLMErrorCodes.INVALID_RESPONSE,
                "Model returned an empty response",
                {"operation": operation},
            )
        return Result.success(content)

    async def synthesize_response(
        self,
        intent: UserIntent,
        executions: Sequence[ToolExecution],
    ) -> Result[str]:
        if executions:
            results = "\n\n".join(
                f"### {e.tool_name}\n{_truncate(e.result_text(), MAX_PAYLOAD_CHARS_IN_PROMPT)}"
                for e in executions
            )
        else:
            results = "No tool results are available."
        user_prompt = f"## Request\n{intent.original_request}\n\n## Tool results\n{results}"
        return await self._text(SYSTEM_PROMPT_SYNTHESIS, user_prompt, "synthesize_response")

    async def summarize_history(
        self,
        intent: UserIntent,
        history: Sequence[Result[ToolExecution]],
    ) -> Result[str]:
        user_prompt = (
            f"## Request\n{intent.original_request}\n\n"
            f"## History\n{render_history(history, self._max_history_entries)}"
        )
        return await self._text(SYSTEM_PROMPT_SUMMARY, user_prompt, "summarize_history")
