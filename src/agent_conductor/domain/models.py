"""Domain models: requests, intents, tool catalog entries, calls, executions, responses.

Pure data, no I/O.  Values the engine treats as immutable are frozen
dataclasses; "modifiers" such as ``with_session`` return copies.
"""

from __future__ import annotations

import asyncio
import base64
import json
import os
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from .errors import ToolErrorCodes
from .result import Result, ResultError, utc_now


def new_session_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Request and intent
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserRequest:
    """Free-text user request, optionally continuing an existing session."""
    content: str
    session_id: Optional[str] = None
    working_directory: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        content: str,
        session_id: Optional[str] = None,
        working_directory: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> "UserRequest":
        if not content or not content.strip():
            raise ValueError("UserRequest content must not be blank")
        return cls(
            content=content,
            session_id=session_id,
            working_directory=working_directory or os.getcwd(),
            context=dict(context or {}),
        )

    def with_session(self, session_id: str) -> "UserRequest":
        return replace(self, session_id=session_id)


class IntentType(str, Enum):
    ANALYZE_CODE = "analyze_code"
    CREATE_BRANCH = "create_branch"
    RUN_TESTS = "run_tests"
    GENERATE_DOCS = "generate_docs"
    REFACTOR = "refactor"
    FIND_BUGS = "find_bugs"
    OPTIMIZE_PERFORMANCE = "optimize_performance"
    SECURITY_SCAN = "security_scan"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: Any) -> "IntentType":
        """Lenient parse: accepts ``"Run-Tests"``, ``"run tests"`` etc.; unknown → OTHER."""
        if isinstance(raw, cls):
            return raw
        key = str(raw or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: Any) -> "ConfidenceLevel":
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.MEDIUM


@dataclass(frozen=True)
class UserIntent:
    """Classified purpose of a request, produced by the reasoning capability."""
    type: IntentType
    original_request: str
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    parameters: Dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolParameter:
    type: str
    description: str = ""
    required: bool = False
    default: Any = None
    allowed_values: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class ToolDefinition:
    """Catalog entry for one tool.  ``parameters`` keeps declaration order."""
    name: str
    description: str
    parameters: Dict[str, ToolParameter] = field(default_factory=dict)
    categories: Tuple[str, ...] = ()
    example: str = ""

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("ToolDefinition name must not be blank")

    @property
    def required_parameters(self) -> List[str]:
        return [name for name, p in self.parameters.items() if p.required]

    def is_required(self, parameter_name: str) -> bool:
        p = self.parameters.get(parameter_name)
        return p is not None and p.required

    def has_category(self, category: str) -> bool:
        wanted = category.lower()
        return any(c.lower() == wanted for c in self.categories)

    def validate_arguments(self, arguments: Dict[str, Any]) -> Result[Dict[str, Any]]:
        """Check required parameters and allowed values; fill in declared defaults."""
        missing = [n for n in self.required_parameters if arguments.get(n) is None]
        if missing:
            return Result.failure(
                ToolErrorCodes.MISSING_REQUIRED_PARAMETER,
                f"Tool '{self.name}' is missing required parameter(s): {', '.join(missing)}",
                {"tool_name": self.name, "missing_parameters": missing},
            )
        resolved = dict(arguments)
        for name, p in self.parameters.items():
            if name not in resolved and p.default is not None:
                resolved[name] = p.default
            if p.allowed_values and name in resolved and resolved[name] not in p.allowed_values:
                return Result.failure(
                    ToolErrorCodes.PARAMETER_VALIDATION_FAILED,
                    f"Parameter '{name}' of tool '{self.name}' must be one of "
                    f"{list(p.allowed_values)!r}, got {resolved[name]!r}",
                    {"tool_name": self.name, "parameter": name},
                )
        return Result.success(resolved)


@dataclass(frozen=True)
class ToolCall:
    """A proposed tool invocation.  Produced by the reasoning capability."""
    tool_name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None
    order: int = 0
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.tool_name or not self.tool_name.strip():
            raise ValueError("ToolCall tool_name must not be blank")

    def with_session(self, session_id: str) -> "ToolCall":
        return replace(self, session_id=session_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "arguments": dict(self.arguments),
            "session_id": self.session_id,
            "order": self.order,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        ts = data.get("created_at")
        return cls(
            tool_name=data["tool_name"],
            arguments=dict(data.get("arguments") or {}),
            session_id=data.get("session_id"),
            order=int(data.get("order", 0)),
            created_at=datetime.fromisoformat(ts) if ts else utc_now(),
        )


# ---------------------------------------------------------------------------
# Tool payloads: a closed set of serialisable shapes
# ---------------------------------------------------------------------------

def normalize_document(data: Any) -> Any:
    """Return *data* as it reads back from JSON; ``TypeError`` if it cannot be encoded."""
    try:
        return json.loads(json.dumps(data, allow_nan=False))
    except (TypeError, ValueError) as exc:
        raise TypeError(f"Tool document is not JSON-serialisable: {exc}") from exc


@dataclass(frozen=True)
class TextPayload:
    text: str
    kind: str = field(default="text", init=False)

    def as_text(self) -> str:
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "text": self.text}


@dataclass(frozen=True)
class DocumentPayload:
    """Structured tool output, held in its JSON-normalised form.

    ``data`` is passed through a strict JSON round trip on construction, so
    tuples become lists and non-string keys become strings, exactly as they
    would after a save and load.  Values JSON cannot represent (datetimes,
    sets, NaN, arbitrary objects) raise ``TypeError``.
    """
    data: Any
    kind: str = field(default="document", init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", normalize_document(self.data))

    def as_text(self) -> str:
        return json.dumps(self.data, ensure_ascii=False, sort_keys=True)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "data": self.data}


@dataclass(frozen=True)
class BinaryPayload:
    data: bytes
    media_type: str = "application/octet-stream"
    kind: str = field(default="binary", init=False)

    def as_text(self) -> str:
        # Binary content is summarised, never inlined into prompts.
        return f"<{len(self.data)} bytes of {self.media_type}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "data": base64.b64encode(self.data).decode("ascii"),
            "media_type": self.media_type,
        }


ToolPayload = Union[TextPayload, DocumentPayload, BinaryPayload]


def coerce_payload(value: Any) -> Optional[ToolPayload]:
    """Convert a raw tool return value into a ``ToolPayload``.

    ``None`` stays ``None``; ``str`` → text; ``dict``/``list`` → document;
    ``bytes``/``bytearray`` → binary.  Any other type, or a document that
    JSON cannot encode, raises ``TypeError``.
    """
    if value is None or isinstance(value, (TextPayload, DocumentPayload, BinaryPayload)):
        return value
    if isinstance(value, str):
        return TextPayload(value)
    if isinstance(value, (dict, list)):
        return DocumentPayload(value)
    if isinstance(value, (bytes, bytearray)):
        return BinaryPayload(bytes(value))
    raise TypeError(f"Unsupported tool payload type: {type(value).__name__}")


def payload_from_dict(data: Optional[Dict[str, Any]]) -> Optional[ToolPayload]:
    if data is None:
        return None
    kind = data.get("kind")
    if kind == "text":
        return TextPayload(data.get("text", ""))
    if kind == "document":
        return DocumentPayload(data.get("data"))
    if kind == "binary":
        return BinaryPayload(
            base64.b64decode(data.get("data", "")),
            media_type=data.get("media_type", "application/octet-stream"),
        )
    raise ValueError(f"Unknown payload kind: {kind!r}")


# ---------------------------------------------------------------------------
# Tool execution
# ---------------------------------------------------------------------------

# First match wins, so subclasses come before their bases.
_EXCEPTION_CODES: Tuple[Tuple[Tuple[Type[BaseException], ...], str], ...] = (
    ((TimeoutError, asyncio.TimeoutError), ToolErrorCodes.EXECUTION_TIMEOUT),
    ((PermissionError,), ToolErrorCodes.ACCESS_DENIED),
    ((FileNotFoundError,), ToolErrorCodes.RESOURCE_NOT_FOUND),
    ((ConnectionError,), ToolErrorCodes.NETWORK_ERROR),
    ((ValueError, TypeError, KeyError), ToolErrorCodes.INVALID_PARAMETERS),
    ((NotImplementedError,), ToolErrorCodes.OPERATION_NOT_SUPPORTED),
    ((RuntimeError,), ToolErrorCodes.INVALID_OPERATION),
)


def tool_error_code_for_exception(exc: BaseException) -> str:
    for types, code in _EXCEPTION_CODES:
        if isinstance(exc, types):
            return code
    return ToolErrorCodes.EXECUTION_FAILED


@dataclass(frozen=True)
class ToolExecution:
    """Successful outcome of a ``ToolCall``.  Failures are ``Result`` failures."""
    tool_call: ToolCall
    duration_ms: float = 0.0
    completed_at: datetime = field(default_factory=utc_now)
    payload: Optional[ToolPayload] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def session_id(self) -> Optional[str]:
        return self.tool_call.session_id

    @property
    def tool_name(self) -> str:
        return self.tool_call.tool_name

    def result_text(self) -> str:
        return self.payload.as_text() if self.payload is not None else ""

    @classmethod
    def success(
        cls,
        tool_call: ToolCall,
        payload: Any = None,
        duration_ms: float = 0.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Result["ToolExecution"]:
        return Result.success(cls(
            tool_call=tool_call,
            duration_ms=float(duration_ms),
            payload=coerce_payload(payload),
            metadata=dict(metadata or {}),
        ))

    @classmethod
    def failure(
        cls,
        tool_call: ToolCall,
        code: str,
        message: str,
        duration_ms: float = 0.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Result["ToolExecution"]:
        if not message or not message.strip():
            raise ValueError("ToolExecution failure message must not be blank")
        meta = dict(metadata or {})
        meta["tool_name"] = tool_call.tool_name
        meta["execution_duration_ms"] = float(duration_ms)
        meta["session_id"] = tool_call.session_id
        return Result.failure(code, message, meta)

    @classmethod
    def from_exception(
        cls,
        tool_call: ToolCall,
        exc: BaseException,
        duration_ms: float = 0.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Result["ToolExecution"]:
        meta = dict(metadata or {})
        meta["exception_type"] = type(exc).__name__
        return cls.failure(
            tool_call,
            tool_error_code_for_exception(exc),
            str(exc) or type(exc).__name__,
            duration_ms=duration_ms,
            metadata=meta,
        )


History = List[Result[ToolExecution]]


# ---------------------------------------------------------------------------
# Responses and sessions
# ---------------------------------------------------------------------------

class ResponseType(str, Enum):
    INFORMATION = "information"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


ERROR_RESPONSE_CONTENT = "I encountered an error while processing your request."


@dataclass(frozen=True)
class AgentResponse:
    """Final artifact of one orchestration run."""
    content: str
    type: ResponseType
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create_success(
        cls,
        content: str,
        type: ResponseType = ResponseType.SUCCESS,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "AgentResponse":
        return cls(content=content, type=type, success=True, metadata=dict(metadata or {}))

    @classmethod
    def create_error(
        cls,
        error: ResultError,
        stage: str,
        type: ResponseType = ResponseType.ERROR,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "AgentResponse":
        """Error response that surfaces the original cause plus the failing stage."""
        meta = dict(metadata or {})
        meta.update({
            "error_code": error.code,
            "error_message": error.message,
            "error_metadata": dict(error.metadata),
            "stage": stage,
        })
        return cls(
            content=f"{ERROR_RESPONSE_CONTENT} {stage} ({error.code}: {error.message})",
            type=type,
            success=False,
            error=error.message,
            metadata=meta,
        )

    def with_metadata(self, **items: Any) -> "AgentResponse":
        return replace(self, metadata={**self.metadata, **items})


@dataclass(frozen=True)
class AgentSession:
    """Audit record of a completed run."""
    session_id: str
    request: UserRequest
    intent: UserIntent
    tool_calls: Tuple[ToolCall, ...]
    response: AgentResponse
    context: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_session_id)
    created_at: datetime = field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Chat wire types (LLM adapter)
# ---------------------------------------------------------------------------

@dataclass
class ToolCallRequest:
    """A single tool call requested by the LLM in a response."""
    call_id: str        # Opaque ID, used to correlate with tool results in the message history
    tool_name: str
    arguments: Dict[str, Any]


@dataclass
class LLMResponse:
    """Response from the LLM after a chat turn.

    Either the LLM returns tool calls (``tool_calls`` non-empty, ``content``
    typically None/empty) or it returns plain text (``content`` set,
    ``tool_calls`` empty).
    """
    content: Optional[str]
    tool_calls: List[ToolCallRequest] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
