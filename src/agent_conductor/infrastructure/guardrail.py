"""Policy-driven guardrail: input sanitisation, tool deny-list, output checks.

The policy is an immutable ``GuardrailPolicy`` value handed to the guardrail at
construction; nothing here reads global state, so decisions are deterministic
for a given policy and input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Pattern, Tuple

from agent_conductor.config.constants import DEFAULT_MAX_INPUT_CHARS, DEFAULT_MAX_OUTPUT_CHARS
from agent_conductor.config.schema import GuardrailConfig
from agent_conductor.domain import GuardrailErrorCodes, Result, ToolCall

logger = logging.getLogger(__name__)

# C0 controls (minus \t \n \r), DEL and C1 controls.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _compile(patterns: Iterable[str]) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p) for p in patterns)


@dataclass(frozen=True)
class GuardrailPolicy:
    blocked_tools: FrozenSet[str] = frozenset()
    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS
    blocked_input_patterns: Tuple[Pattern[str], ...] = ()
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS
    blocked_output_patterns: Tuple[Pattern[str], ...] = ()

    @classmethod
    def create(
        cls,
        blocked_tools: Iterable[str] = (),
        *,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        blocked_input_patterns: Iterable[str] = (),
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
        blocked_output_patterns: Iterable[str] = (),
    ) -> "GuardrailPolicy":
        """Build a policy from plain strings; tool names are case-folded, patterns compiled."""
        return cls(
            blocked_tools=frozenset(name.strip().casefold() for name in blocked_tools if name.strip()),
            max_input_chars=max_input_chars,
            blocked_input_patterns=_compile(blocked_input_patterns),
            max_output_chars=max_output_chars,
            blocked_output_patterns=_compile(blocked_output_patterns),
        )

    @classmethod
    def from_config(cls, config: GuardrailConfig) -> "GuardrailPolicy":
        return cls.create(
            config.blocked_tools,
            max_input_chars=config.max_input_chars,
            blocked_input_patterns=config.blocked_input_patterns,
            max_output_chars=config.max_output_chars,
            blocked_output_patterns=config.blocked_output_patterns,
        )

    def is_blocked(self, tool_name: str) -> bool:
        return tool_name.strip().casefold() in self.blocked_tools


class PolicyGuardrail:
    """``Guardrail`` port implementation backed by a ``GuardrailPolicy``."""

    def __init__(self, policy: GuardrailPolicy = GuardrailPolicy()) -> None:
        self._policy = policy

    @property
    def policy(self) -> GuardrailPolicy:
        return self._policy

    async def validate_input(self, text: str) -> Result[str]:
        cleaned = _CONTROL_CHARS.sub("", text or "").strip()
        if not cleaned:
            return Result.failure(GuardrailErrorCodes.INPUT_REJECTED, "Input is empty.")
        if len(cleaned) > self._policy.max_input_chars:
            return Result.failure(
                GuardrailErrorCodes.INPUT_REJECTED,
                f"Input exceeds {self._policy.max_input_chars} characters.",
                {"length": len(cleaned), "max_length": self._policy.max_input_chars},
            )
        for pattern in self._policy.blocked_input_patterns:
            if pattern.search(cleaned):
                logger.warning("Input matched blocked pattern %r", pattern.pattern)
                return Result.failure(
                    GuardrailErrorCodes.INPUT_REJECTED,
                    "Input matches a blocked pattern.",
                    {"pattern": pattern.pattern},
                )
        return Result.success(cleaned)

    async def is_action_allowed(self, call: ToolCall) -> Result[bool]:
        if self._policy.is_blocked(call.tool_name):
            logger.warning("Tool %r blocked by policy", call.tool_name)
            return Result.failure(
                GuardrailErrorCodes.ACTION_BLOCKED,
                f"Execution of the tool '{call.tool_name}' is blocked by security policy.",
                {"tool_name": call.tool_name},
            )
        return Result.success(True)

    async def validate_output(self, text: str) -> Result[str]:
        if not text or not text.strip():
            return Result.failure(GuardrailErrorCodes.OUTPUT_REJECTED, "Response is empty.")
        if len(text) > self._policy.max_output_chars:
            return Result.failure(
                GuardrailErrorCodes.OUTPUT_REJECTED,
                f"Response exceeds {self._policy.max_output_chars} characters.",
                {"length": len(text), "max_length": self._policy.max_output_chars},
            )
        for pattern in self._policy.blocked_output_patterns:
            if pattern.search(text):
                logger.warning("Response matched blocked pattern %r", pattern.pattern)
                return Result.failure(
                    GuardrailErrorCodes.OUTPUT_REJECTED,
                    "Response matches a blocked pattern.",
                    {"pattern": pattern.pattern},
                )
        return Result.success(text)
