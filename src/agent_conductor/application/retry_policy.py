"""Error classification and retry policy.

Maps a ``ResultError.code`` to an ``ErrorCategory`` via a static table,
decides whether it is retryable, and computes the exponential backoff delay::

    delay = 2 ** (attempt - 1) * multiplier(category), capped at max_delay_s

The policy is a frozen value with no I/O; ``DEFAULT_RETRY_POLICY`` is used
everywhere unless a caller injects another one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping

from agent_conductor.config.constants import MAX_RETRY_DELAY_S
from agent_conductor.domain import (
    AgentErrorCodes,
    GuardrailErrorCodes,
    LLMErrorCodes,
    ToolErrorCodes,
)


class ErrorCategory(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    SERVICE_UNAVAILABLE = "service_unavailable"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    SECURITY = "security"
    RESOURCE = "resource"
    TOOL = "tool"
    CONFIGURATION = "configuration"
    OPERATION = "operation"
    DATA = "data"
    EXECUTION = "execution"
    CANCELLED = "cancelled"
    PERSISTENCE = "persistence"
    UNKNOWN = "unknown"


def _table(groups: Dict[ErrorCategory, tuple]) -> Mapping[str, ErrorCategory]:
    return MappingProxyType({code: cat for cat, codes in groups.items() for code in codes})


_T = ToolErrorCodes
_L = LLMErrorCodes
_G = GuardrailErrorCodes
_A = AgentErrorCodes

DEFAULT_CATEGORIES: Mapping[str, ErrorCategory] = _table({
    ErrorCategory.TIMEOUT: (_T.EXECUTION_TIMEOUT, _T.CONNECTION_TIMEOUT, _L.TIMEOUT),
    ErrorCategory.NETWORK: (_T.NETWORK_ERROR, _L.NETWORK_ERROR),
    ErrorCategory.SERVICE_UNAVAILABLE: (
        _T.SERVICE_UNAVAILABLE, _T.TOOL_UNAVAILABLE, _T.RESOURCE_UNAVAILABLE,
        _L.SERVICE_UNAVAILABLE, _L.PROVIDER_NOT_AVAILABLE,
    ),
    ErrorCategory.RATE_LIMIT: (_L.RATE_LIMIT, _T.CONCURRENCY_LIMIT_REACHED),
    ErrorCategory.VALIDATION: (
        _T.INVALID_PARAMETERS, _T.PARAMETER_VALIDATION_FAILED, _T.MISSING_REQUIRED_PARAMETER,
        _L.INVALID_REQUEST, _G.INPUT_REJECTED, _G.OUTPUT_REJECTED, _A.VALIDATION_FAILED,
    ),
    ErrorCategory.SECURITY: (
        _T.ACCESS_DENIED, _T.INSUFFICIENT_PERMISSIONS, _T.AUTHENTICATION_REQUIRED,
        _L.AUTHENTICATION, _L.CONTENT_FILTERED, _G.ACTION_BLOCKED,
    ),
    ErrorCategory.RESOURCE: (
        _T.RESOURCE_NOT_FOUND, _T.RESOURCE_LIMIT_EXCEEDED, _L.QUOTA_EXCEEDED, _L.MODEL_NOT_FOUND,
    ),
    ErrorCategory.TOOL: (_T.TOOL_NOT_FOUND, _T.TOOL_DISABLED, _T.TOOL_VERSION_MISMATCH),
    ErrorCategory.CONFIGURATION: (
        _T.CONFIGURATION_ERROR, _T.MISSING_CONFIGURATION, _T.INVALID_CONFIGURATION, _L.CONFIGURATION,
    ),
    ErrorCategory.OPERATION: (_T.INVALID_OPERATION, _T.OPERATION_NOT_SUPPORTED),
    ErrorCategory.DATA: (
        _T.DATA_FORMAT_ERROR, _T.DATA_CORRUPTION, _T.UNSUPPORTED_DATA_FORMAT, _L.INVALID_RESPONSE,
    ),
    ErrorCategory.EXECUTION: (_T.EXECUTION_FAILED,),
    ErrorCategory.CANCELLED: (_T.EXECUTION_CANCELLED, _L.OPERATION_CANCELLED, _A.OPERATION_CANCELLED),
    ErrorCategory.PERSISTENCE: (_A.HISTORY_LOAD_FAILED, _A.HISTORY_SAVE_FAILED),
})

DEFAULT_RETRYABLE_CODES: FrozenSet[str] = frozenset({
    _T.EXECUTION_TIMEOUT,
    _T.NETWORK_ERROR,
    _T.CONNECTION_TIMEOUT,
    _T.SERVICE_UNAVAILABLE,
    _T.RESOURCE_UNAVAILABLE,
    _T.TOOL_UNAVAILABLE,
    _T.CONCURRENCY_LIMIT_REACHED,
    _L.TIMEOUT,
    _L.NETWORK_ERROR,
    _L.SERVICE_UNAVAILABLE,
    _L.RATE_LIMIT,
    _L.PROVIDER_NOT_AVAILABLE,
})

DEFAULT_MULTIPLIERS: Mapping[ErrorCategory, float] = MappingProxyType({
    ErrorCategory.TIMEOUT: 2.0,
    ErrorCategory.SERVICE_UNAVAILABLE: 2.0,
    ErrorCategory.NETWORK: 1.5,
})

_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    _T.EXECUTION_FAILED: "Tool execution failed due to an unexpected error",
    _T.EXECUTION_TIMEOUT: "Tool execution exceeded the allowed time limit",
    _T.EXECUTION_CANCELLED: "Tool execution was cancelled",
    _T.INVALID_PARAMETERS: "The provided parameters are invalid or incorrectly formatted",
    _T.PARAMETER_VALIDATION_FAILED: "Parameter validation failed according to tool requirements",
    _T.MISSING_REQUIRED_PARAMETER: "A required parameter is missing from the request",
    _T.ACCESS_DENIED: "Access denied: insufficient permissions to execute this tool",
    _T.INSUFFICIENT_PERMISSIONS: "The caller lacks the necessary permissions for this operation",
    _T.AUTHENTICATION_REQUIRED: "Authentication is required to execute this tool",
    _T.RESOURCE_NOT_FOUND: "The requested resource could not be found",
    _T.RESOURCE_UNAVAILABLE: "The required resource is temporarily unavailable",
    _T.RESOURCE_LIMIT_EXCEEDED: "Resource usage limit has been exceeded",
    _T.TOOL_NOT_FOUND: "The requested tool does not exist or is not available",
    _T.TOOL_UNAVAILABLE: "The tool is currently unavailable for execution",
    _T.TOOL_DISABLED: "The tool is disabled or in maintenance mode",
    _T.TOOL_VERSION_MISMATCH: "Tool version is incompatible with the current system",
    _T.CONFIGURATION_ERROR: "Tool configuration error prevents execution",
    _T.MISSING_CONFIGURATION: "Required configuration is missing for this tool",
    _T.INVALID_CONFIGURATION: "Tool configuration is invalid or corrupted",
    _T.NETWORK_ERROR: "A network error occurred during tool execution",
    _T.CONNECTION_TIMEOUT: "Connection to the tool service timed out",
    _T.SERVICE_UNAVAILABLE: "The tool service is currently unavailable",
    _T.INVALID_OPERATION: "The requested operation is invalid for the current tool state",
    _T.OPERATION_NOT_SUPPORTED: "This operation is not supported by the tool",
    _T.CONCURRENCY_LIMIT_REACHED: "Maximum concurrent executions reached",
    _T.DATA_FORMAT_ERROR: "Data format error in tool input or output",
    _T.DATA_CORRUPTION: "Data corruption was detected during processing",
    _T.UNSUPPORTED_DATA_FORMAT: "The data format is not supported by this tool",
    _L.AUTHENTICATION: "The LLM provider rejected the credentials",
    _L.RATE_LIMIT: "The LLM provider rate limit was exceeded",
    _L.INVALID_REQUEST: "The LLM provider rejected the request as invalid",
    _L.SERVICE_UNAVAILABLE: "The LLM service is temporarily unavailable",
    _L.TIMEOUT: "The LLM request timed out",
    _L.CONFIGURATION: "The LLM provider is misconfigured",
    _L.NETWORK_ERROR: "A network error occurred while contacting the LLM provider",
    _L.OPERATION_CANCELLED: "The LLM request was cancelled",
    _L.PROVIDER_NOT_AVAILABLE: "The LLM provider is not available",
    _L.MODEL_NOT_FOUND: "The requested model does not exist on the LLM provider",
    _L.QUOTA_EXCEEDED: "The LLM provider quota has been exhausted",
    _L.CONTENT_FILTERED: "The LLM provider filtered the content",
    _L.INVALID_RESPONSE: "The LLM returned an empty or malformed response",
    _L.UNKNOWN: "An unexpected error occurred in the LLM provider",
    _G.INPUT_REJECTED: "The request was rejected by the input policy",
    _G.ACTION_BLOCKED: "The tool call was blocked by the action policy",
    _G.OUTPUT_REJECTED: "The response was rejected by the output policy",
    _A.OPERATION_CANCELLED: "The operation was cancelled",
    _A.HISTORY_LOAD_FAILED: "Session history could not be loaded",
    _A.HISTORY_SAVE_FAILED: "Session history could not be saved",
    _A.VALIDATION_FAILED: "The request arguments were invalid",
    _A.UNKNOWN: "An unexpected error occurred during processing",
})

_UNKNOWN_DESCRIPTION = "An unknown error occurred"

# 2 ** 63 seconds is far beyond any cap; larger exponents are clamped before pow().
_MAX_EXPONENT = 63


@dataclass(frozen=True)
class RetryPolicy:
    """Static classification tables plus the backoff formula."""
    categories: Mapping[str, ErrorCategory] = field(default_factory=lambda: DEFAULT_CATEGORIES)
    retryable_codes: FrozenSet[str] = DEFAULT_RETRYABLE_CODES
    multipliers: Mapping[ErrorCategory, float] = field(default_factory=lambda: DEFAULT_MULTIPLIERS)
    max_delay_s: float = MAX_RETRY_DELAY_S

    def category_of(self, code: str) -> ErrorCategory:
        return self.categories.get(code, ErrorCategory.UNKNOWN)

    def is_retryable(self, code: str) -> bool:
        return code in self.retryable_codes

    def multiplier(self, category: ErrorCategory) -> float:
        return self.multipliers.get(category, 1.0)

    def retry_delay(self, code: str, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        exponent = attempt - 1
        if exponent > _MAX_EXPONENT:
            return self.max_delay_s
        delay = float(2 ** exponent) * self.multiplier(self.category_of(code))
        return min(delay, self.max_delay_s)

    def describe(self, code: str) -> str:
        return _DESCRIPTIONS.get(code, _UNKNOWN_DESCRIPTION)


DEFAULT_RETRY_POLICY = RetryPolicy()


def get_category(code: str) -> ErrorCategory:
    return DEFAULT_RETRY_POLICY.category_of(code)


def is_retryable(code: str) -> bool:
    return DEFAULT_RETRY_POLICY.is_retryable(code)


def retry_delay(code: str, attempt: int) -> float:
    return DEFAULT_RETRY_POLICY.retry_delay(code, attempt)


def describe(code: str) -> str:
    return DEFAULT_RETRY_POLICY.describe(code)
