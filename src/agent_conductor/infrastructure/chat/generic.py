"""OpenAI-compatible chat-completions client used by the reasoning service.

One ``POST {base_url}/chat/completions`` per reasoning step.  Any server that
speaks the OpenAI format works: hosted APIs, vLLM, LM Studio, or Ollama's
``/v1`` endpoint.  Select it with ``"backend": "generic"`` on the model entry
in the ``CONDUCTOR_CONFIG_PATH`` file.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Union

import httpx

from agent_conductor.config.constants import LLM_CHAT_DEFAULT_TIMEOUT_S
from agent_conductor.domain import LLMResponse
from agent_conductor.infrastructure.chat._parser import parse_chat_response

logger = logging.getLogger(__name__)

ToolChoice = Union[str, Dict[str, Any]]


def force_function(name: str) -> Dict[str, Any]:
    """``tool_choice`` value that asks the model to call exactly *name*."""
    return {"type": "function", "function": {"name": name}}


class GenericChatClient:
    """Chat client for a single OpenAI-compatible endpoint.

    Non-2xx responses raise ``httpx.HTTPStatusError`` and transport problems
    raise the matching ``httpx`` exception.  Nothing is retried here; the
    reasoning service turns exceptions into ``LLM_*`` error codes.

    Pass ``client`` to share one ``httpx.AsyncClient`` (and its connection
    pool) across calls.  A shared client is never closed by this class.
    Without one, each call opens and closes its own client.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_s: float = LLM_CHAT_DEFAULT_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_s
        self._client = client

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        # Local servers run without auth; sending an empty bearer token upsets some of them.
        if not self._api_key:
            return {}
        return {"Authorization": f"Bearer {self._api_key}"}

    @staticmethod
    def _body(
        messages: List[Dict[str, Any]],
        model: str,
        tools: Optional[List[Dict[str, Any]]],
        tool_choice: Optional[ToolChoice],
        temperature: float,
        top_p: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": False,
            "temperature": temperature,
            "top_p": top_p,
            "max_tokens": max_tokens,
        }
        if tools:
            body["tools"] = tools
            if tool_choice is not None:
                body["tool_choice"] = tool_choice
        return body

    async def _post(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> Dict[str, Any]:
        r = await client.post(self.endpoint, headers=self._headers(), json=body)
        r.raise_for_status()
        return r.json()

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[ToolChoice] = None,
        temperature: float = 0.1,
        top_p: float = 0.9,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        body = self._body(messages, model, tools, tool_choice, temperature, top_p, max_tokens)
        logger.debug(
            "POST %s model=%s messages=%d tools=%d",
            self.endpoint, model, len(messages), len(tools or []),
        )
        started = time.monotonic()
        if self._client is not None:
            data = await self._post(self._client, body)
        else:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
                data = await self._post(client, body)

        usage = data.get("usage") if isinstance(data, dict) else None
        logger.debug(
            "Chat completion model=%s took %.0f ms usage=%s",
            model, (time.monotonic() - started) * 1000, usage or "-",
        )
        return parse_chat_response(data)
