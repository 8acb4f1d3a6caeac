from .errors import (
    ALL_AGENT_CODES,
    ALL_GUARDRAIL_CODES,
    ALL_LLM_CODES,
    ALL_TOOL_CODES,
    AgentErrorCodes,
    ConductorError,
    ConfigurationError,
    GuardrailErrorCodes,
    LLMErrorCodes,
    ResultAccessError,
    ResultException,
    ToolErrorCodes,
)
from .models import (
    ERROR_RESPONSE_CONTENT,
    AgentResponse,
    AgentSession,
    BinaryPayload,
    ConfidenceLevel,
    DocumentPayload,
    History,
    IntentType,
    LLMResponse,
    ResponseType,
    TextPayload,
    ToolCall,
    ToolCallRequest,
    ToolDefinition,
    ToolExecution,
    ToolParameter,
    ToolPayload,
    UserIntent,
    UserRequest,
    coerce_payload,
    new_session_id,
    payload_from_dict,
    tool_error_code_for_exception,
)
from .result import Result, ResultError, utc_now

__all__ = [
    "ERROR_RESPONSE_CONTENT",
    "ALL_AGENT_CODES",
    "ALL_GUARDRAIL_CODES",
    "ALL_LLM_CODES",
    "ALL_TOOL_CODES",
    "AgentErrorCodes",
    "AgentResponse",
    "AgentSession",
    "BinaryPayload",
    "ConductorError",
    "ConfidenceLevel",
    "ConfigurationError",
    "DocumentPayload",
    "GuardrailErrorCodes",
    "History",
    "IntentType",
    "LLMErrorCodes",
    "LLMResponse",
    "ResponseType",
    "Result",
    "ResultAccessError",
    "ResultError",
    "ResultException",
    "TextPayload",
    "ToolCall",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolErrorCodes",
    "ToolExecution",
    "ToolParameter",
    "ToolPayload",
    "UserIntent",
    "UserRequest",
    "coerce_payload",
    "new_session_id",
    "payload_from_dict",
    "tool_error_code_for_exception",
    "utc_now",
]
