"""Result / ResultError: the dual-channel outcome used across every component.

A ``Result`` holds exactly one of a success value or a ``ResultError``.
Expected failures (validation, network, policy rejections, reasoning errors)
are returned as ``Result.failure(...)`` instead of being raised; only
programmer errors surface as exceptions.

Typical use::

    result = await reasoning.analyze_intent(request)
    if result.is_failure:
        return _error_response(result.error, "Failed to analyze user intent.")
    intent = result.value
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .errors import ResultAccessError, ResultException

T = TypeVar("T")
U = TypeVar("U")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResultError:
    """Structured error: stable machine-readable code, human message, free-form metadata."""
    code: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.code or not self.code.strip():
            raise ValueError("ResultError.code must be a non-empty string")
        if self.message is None:
            raise ValueError("ResultError.message must not be None")

    def with_metadata(self, **items: Any) -> "ResultError":
        """Return a copy with ``items`` merged into the metadata."""
        return replace(self, metadata={**self.metadata, **items})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultError":
        ts = data.get("timestamp")
        return cls(
            code=data["code"],
            message=data.get("message", ""),
            metadata=dict(data.get("metadata") or {}),
            timestamp=datetime.fromisoformat(ts) if ts else utc_now(),
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


_MISSING: Any = object()


class Result(Generic[T]):
    """Tagged union of a success value or a ``ResultError``.

    Construct with ``Result.success(value)`` or ``Result.failure(code, message)``.
    Reading ``value`` of a failure (or ``error`` of a success) raises
    ``ResultAccessError``; callers must branch on ``is_success`` first.
    """

    __slots__ = ("_value", "_error")

    def __init__(self, value: Any = _MISSING, error: Optional[ResultError] = None) -> None:
        if (value is _MISSING) == (error is None):
            raise ResultAccessError("Result requires exactly one of a value or an error")
        object.__setattr__(self, "_value", None if value is _MISSING else value)
        object.__setattr__(self, "_error", error)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Result is immutable")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        return cls(error=ResultError(code=code, message=message, metadata=dict(metadata or {})))

    @classmethod
    def from_error(cls, error: ResultError) -> "Result[T]":
        """Re-wrap an existing error, e.g. to propagate it under a different value type."""
        return cls(error=error)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_success(self) -> bool:
        return self._error is None

    @property
    def is_failure(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        if self._error is not None:
            raise ResultAccessError(
                f"Cannot access value of a failed Result ({self._error.code})"
            )
        return self._value

    @property
    def error(self) -> ResultError:
        if self._error is None:
            raise ResultAccessError("Cannot access error of a successful Result")
        return self._error

    # ------------------------------------------------------------------
    # Combinators
    # ------------------------------------------------------------------

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        if self._error is not None:
            return Result.from_error(self._error)
        return Result.success(fn(self._value))

    def bind(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        if self._error is not None:
            return Result.from_error(self._error)
        return fn(self._value)

    def on_success(self, fn: Callable[[T], Any]) -> "Result[T]":
        if self._error is None:
            fn(self._value)
        return self

    def on_failure(self, fn: Callable[[ResultError], Any]) -> "Result[T]":
        if self._error is not None:
            fn(self._error)
        return self

    def value_or(self, default: T) -> T:
        return default if self._error is not None else self._value

    def unwrap(self) -> T:
        """Return the value or raise ``ResultException`` carrying the error."""
        if self._error is not None:
            raise ResultException(self._error)
        return self._value

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self._error == other._error and self._value == other._value

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self._error is not None:
            return f"Result.failure({self._error.code!r}, {self._error.message!r})"
        return f"Result.success({self._value!r})"
