"""Translate chat-client exceptions into ``LLM_*`` error results."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Tuple

import httpx

from agent_conductor.domain import LLMErrorCodes, Result


def classify_llm_exception(exc: BaseException) -> Tuple[str, str]:
    """Return ``(code, message)`` for an exception raised by a ``ChatClient``."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return LLMErrorCodes.AUTHENTICATION, f"LLM provider rejected credentials (HTTP {status})"
        if status == 404:
            return LLMErrorCodes.MODEL_NOT_FOUND, "LLM model or endpoint not found (HTTP 404)"
        if status == 429:
            return LLMErrorCodes.RATE_LIMIT, "LLM provider rate limit exceeded (HTTP 429)"
        if status == 400:
            return LLMErrorCodes.INVALID_REQUEST, "LLM provider rejected the request (HTTP 400)"
        if status >= 500:
            return LLMErrorCodes.SERVICE_UNAVAILABLE, f"LLM service unavailable (HTTP {status})"
        return LLMErrorCodes.UNKNOWN, f"Unexpected LLM HTTP status {status}"
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return LLMErrorCodes.TIMEOUT, "LLM request timed out"
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return LLMErrorCodes.NETWORK_ERROR, f"Network error contacting LLM provider: {exc}"
    if isinstance(exc, (ValueError, KeyError)):
        return LLMErrorCodes.INVALID_RESPONSE, f"Malformed LLM response: {exc}"
    return LLMErrorCodes.UNKNOWN, f"Unexpected LLM error: {exc}"


def llm_failure(exc: BaseException, operation: str) -> Result[Any]:
    code, message = classify_llm_exception(exc)
    metadata: Dict[str, Any] = {
        "operation": operation,
        "exception_type": type(exc).__name__,
    }
    if isinstance(exc, httpx.HTTPStatusError):
        metadata["status_code"] = exc.response.status_code
    return Result.failure(code, message, metadata)
