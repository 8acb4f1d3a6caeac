"""Tests for the policy-driven guardrail."""
from __future__ import annotations

import pytest

from agent_conductor.config import GuardrailConfig
from agent_conductor.domain import GuardrailErrorCodes, ToolCall
from agent_conductor.infrastructure.guardrail import GuardrailPolicy, PolicyGuardrail


@pytest.mark.asyncio
async def test_input_is_stripped_and_control_chars_removed():
    result = await PolicyGuardrail().validate_input("  hello\x00 world\x1b \n")
    assert result.value == "hello world"


@pytest.mark.asyncio
async def test_input_keeps_tabs_and_newlines():
    result = await PolicyGuardrail().validate_input("line one\n\tline two")
    assert result.value == "line one\n\tline two"


@pytest.mark.asyncio
async def test_empty_input_after_sanitising_is_rejected():
    result = await PolicyGuardrail().validate_input("\x00\x07  ")
    assert result.error.code == GuardrailErrorCodes.INPUT_REJECTED
    assert result.error.message == "Input is empty."


@pytest.mark.asyncio
async def test_overlong_input_is_rejected():
    guardrail = PolicyGuardrail(GuardrailPolicy.create(max_input_chars=5))
    result = await guardrail.validate_input("123456")
    assert result.error.code == GuardrailErrorCodes.INPUT_REJECTED
    assert result.error.metadata == {"length": 6, "max_length": 5}


@pytest.mark.asyncio
async def test_blocked_input_pattern():
    guardrail = PolicyGuardrail(GuardrailPolicy.create(blocked_input_patterns=[r"(?i)drop\s+table"]))
    result = await guardrail.validate_input("please DROP  TABLE users")
    assert result.error.code == GuardrailErrorCodes.INPUT_REJECTED
    assert result.error.metadata["pattern"] == r"(?i)drop\s+table"


@pytest.mark.asyncio
async def test_action_allowed_by_default():
    result = await PolicyGuardrail().is_action_allowed(ToolCall("anything"))
    assert result.value is True


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["delete_repository", "DELETE_REPOSITORY", " Delete_Repository "])
async def test_deny_list_is_case_insensitive(name):
    guardrail = PolicyGuardrail(GuardrailPolicy.create(["Delete_Repository"]))
    result = await guardrail.is_action_allowed(ToolCall(name))
    assert result.error.code == GuardrailErrorCodes.ACTION_BLOCKED
    assert result.error.metadata["tool_name"] == name


@pytest.mark.asyncio
async def test_output_checks():
    guardrail = PolicyGuardrail(GuardrailPolicy.create(max_output_chars=20, blocked_output_patterns=["sk-[a-z0-9]+"]))
    assert (await guardrail.validate_output("fine")).value == "fine"
    assert (await guardrail.validate_output("  ")).error.message == "Response is empty."
    assert (await guardrail.validate_output("x" * 21)).error.code == GuardrailErrorCodes.OUTPUT_REJECTED
    assert (await guardrail.validate_output("key sk-abc123")).error.metadata["pattern"] == "sk-[a-z0-9]+"


def test_policy_from_config():
    config = GuardrailConfig(
        blocked_tools=["Shell", "  "],
        max_input_chars=100,
        blocked_input_patterns=["secret"],
    )
    policy = GuardrailPolicy.from_config(config)
    assert policy.blocked_tools == frozenset({"shell"})
    assert policy.max_input_chars == 100
    assert policy.is_blocked("SHELL")
    assert [p.pattern for p in policy.blocked_input_patterns] == ["secret"]


def test_invalid_pattern_rejected_by_config():
    with pytest.raises(ValueError, match="Invalid guardrail pattern"):
        GuardrailConfig(blocked_input_patterns=["("])
