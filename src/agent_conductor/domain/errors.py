"""Domain exceptions and the closed error-code taxonomies.

Exceptions are reserved for programming-contract violations and configuration
mistakes.  Expected, recoverable failures travel as ``Result`` values whose
``ResultError.code`` is drawn from one of the code families below.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, FrozenSet

if TYPE_CHECKING:
    from .result import ResultError


class ConductorError(Exception):
    """Base for conductor errors."""
    pass


class ResultAccessError(ConductorError):
    """Value read from a failed Result, or error read from a successful one."""
    pass


class ConfigurationError(ConductorError, ValueError):
    """Configuration is missing or inconsistent."""
    pass


class ResultException(ConductorError):
    """Raised by ``Result.unwrap()`` on a failure; carries the original error."""

    def __init__(self, error: "ResultError") -> None:
        super().__init__(f"{error.code}: {error.message}")
        self.error = error


def _codes(cls: type) -> FrozenSet[str]:
    return frozenset(v for k, v in vars(cls).items() if k.isupper() and isinstance(v, str))


class ToolErrorCodes:
    """Codes reported by tool services for a failed ``ToolCall``."""

    # execution
    EXECUTION_FAILED = "TOOL_EXECUTION_FAILED"
    EXECUTION_TIMEOUT = "TOOL_EXECUTION_TIMEOUT"
    EXECUTION_CANCELLED = "TOOL_EXECUTION_CANCELLED"

    # parameters
    INVALID_PARAMETERS = "TOOL_INVALID_PARAMETERS"
    PARAMETER_VALIDATION_FAILED = "TOOL_PARAMETER_VALIDATION_FAILED"
    MISSING_REQUIRED_PARAMETER = "TOOL_MISSING_REQUIRED_PARAMETER"

    # access
    ACCESS_DENIED = "TOOL_ACCESS_DENIED"
    INSUFFICIENT_PERMISSIONS = "TOOL_INSUFFICIENT_PERMISSIONS"
    AUTHENTICATION_REQUIRED = "TOOL_AUTHENTICATION_REQUIRED"

    # resources
    RESOURCE_NOT_FOUND = "TOOL_RESOURCE_NOT_FOUND"
    RESOURCE_UNAVAILABLE = "TOOL_RESOURCE_UNAVAILABLE"
    RESOURCE_LIMIT_EXCEEDED = "TOOL_RESOURCE_LIMIT_EXCEEDED"

    # tool state
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    TOOL_UNAVAILABLE = "TOOL_UNAVAILABLE"
    TOOL_DISABLED = "TOOL_DISABLED"
    TOOL_VERSION_MISMATCH = "TOOL_VERSION_MISMATCH"

    # configuration
    CONFIGURATION_ERROR = "TOOL_CONFIGURATION_ERROR"
    MISSING_CONFIGURATION = "TOOL_MISSING_CONFIGURATION"
    INVALID_CONFIGURATION = "TOOL_INVALID_CONFIGURATION"

    # network
    NETWORK_ERROR = "TOOL_NETWORK_ERROR"
    CONNECTION_TIMEOUT = "TOOL_CONNECTION_TIMEOUT"
    SERVICE_UNAVAILABLE = "TOOL_SERVICE_UNAVAILABLE"

    # operational
    INVALID_OPERATION = "TOOL_INVALID_OPERATION"
    OPERATION_NOT_SUPPORTED = "TOOL_OPERATION_NOT_SUPPORTED"
    CONCURRENCY_LIMIT_REACHED = "TOOL_CONCURRENCY_LIMIT_REACHED"

    # data
    DATA_FORMAT_ERROR = "TOOL_DATA_FORMAT_ERROR"
    DATA_CORRUPTION = "TOOL_DATA_CORRUPTION"
    UNSUPPORTED_DATA_FORMAT = "TOOL_UNSUPPORTED_DATA_FORMAT"


class LLMErrorCodes:
    """Codes reported by the reasoning capability."""

    AUTHENTICATION = "LLM_AUTH_FAILED"
    RATE_LIMIT = "LLM_RATE_LIMIT"
    INVALID_REQUEST = "LLM_INVALID_REQUEST"
    SERVICE_UNAVAILABLE = "LLM_SERVICE_UNAVAILABLE"
    TIMEOUT = "LLM_TIMEOUT"
    CONFIGURATION = "LLM_CONFIG_ERROR"
    NETWORK_ERROR = "LLM_NETWORK_ERROR"
    OPERATION_CANCELLED = "LLM_OPERATION_CANCELLED"
    UNKNOWN = "LLM_UNKNOWN_ERROR"
    PROVIDER_NOT_AVAILABLE = "LLM_PROVIDER_UNAVAILABLE"
    MODEL_NOT_FOUND = "LLM_MODEL_NOT_FOUND"
    QUOTA_EXCEEDED = "LLM_QUOTA_EXCEEDED"
    CONTENT_FILTERED = "LLM_CONTENT_FILTERED"
    INVALID_RESPONSE = "LLM_INVALID_RESPONSE"


class GuardrailErrorCodes:
    """Codes produced by the guardrail gate."""

    INPUT_REJECTED = "GUARDRAIL_INPUT_REJECTED"
    ACTION_BLOCKED = "GUARDRAIL_ACTION_BLOCKED"
    OUTPUT_REJECTED = "GUARDRAIL_OUTPUT_REJECTED"


class AgentErrorCodes:
    """Codes produced by the orchestrator itself."""

    OPERATION_CANCELLED = "AGENT_OPERATION_CANCELLED"
    UNKNOWN = "AGENT_UNKNOWN_ERROR"
    HISTORY_LOAD_FAILED = "AGENT_HISTORY_LOAD_FAILED"
    HISTORY_SAVE_FAILED = "AGENT_HISTORY_SAVE_FAILED"
    VALIDATION_FAILED = "AGENT_VALIDATION_FAILED"


ALL_TOOL_CODES: FrozenSet[str] = _codes(ToolErrorCodes)
ALL_LLM_CODES: FrozenSet[str] = _codes(LLMErrorCodes)
ALL_GUARDRAIL_CODES: FrozenSet[str] = _codes(GuardrailErrorCodes)
ALL_AGENT_CODES: FrozenSet[str] = _codes(AgentErrorCodes)
