"""Tests for domain models: requests, intents, tool definitions, executions, responses."""
from __future__ import annotations

import asyncio

import pytest

from agent_conductor.domain import (
    ERROR_RESPONSE_CONTENT,
    AgentResponse,
    BinaryPayload,
    ConfidenceLevel,
    DocumentPayload,
    IntentType,
    ResponseType,
    ResultError,
    TextPayload,
    ToolCall,
    ToolDefinition,
    ToolErrorCodes,
    ToolExecution,
    ToolParameter,
    UserRequest,
    coerce_payload,
    payload_from_dict,
    tool_error_code_for_exception,
)


# ---------------------------------------------------------------------------
# UserRequest / intent enums
# ---------------------------------------------------------------------------

def test_user_request_rejects_blank_content():
    with pytest.raises(ValueError):
        UserRequest.create("   ")


def test_user_request_defaults_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    req = UserRequest.create("hello")
    assert req.working_directory == str(tmp_path)
    assert req.session_id is None
    assert req.with_session("abc").session_id == "abc"


@pytest.mark.parametrize("raw, expected", [
    ("run_tests", IntentType.RUN_TESTS),
    ("Run-Tests", IntentType.RUN_TESTS),
    ("security scan", IntentType.SECURITY_SCAN),
    ("something else", IntentType.OTHER),
    (None, IntentType.OTHER),
])
def test_intent_type_parse(raw, expected):
    assert IntentType.parse(raw) is expected


def test_confidence_parse_defaults_to_medium():
    assert ConfidenceLevel.parse("HIGH") is ConfidenceLevel.HIGH
    assert ConfidenceLevel.parse("certain") is ConfidenceLevel.MEDIUM


# ---------------------------------------------------------------------------
# ToolDefinition
# ---------------------------------------------------------------------------

def _grep_tool() -> ToolDefinition:
    return ToolDefinition(
        name="grep",
        description="Search files",
        parameters={
            "pattern": ToolParameter("string", "Regex", required=True),
            "path": ToolParameter("string", "Root", default="."),
            "mode": ToolParameter("string", allowed_values=("fast", "full")),
        },
        categories=("Search", "fs"),
    )


def test_tool_definition_rejects_blank_name():
    with pytest.raises(ValueError):
        ToolDefinition(name="", description="x")


def test_tool_definition_helpers():
    t = _grep_tool()
    assert t.required_parameters == ["pattern"]
    assert t.is_required("pattern") and not t.is_required("path")
    assert not t.is_required("missing")
    assert t.has_category("search")
    assert not t.has_category("network")


def test_validate_arguments_fills_defaults():
    result = _grep_tool().validate_arguments({"pattern": "TODO"})
    assert result.value == {"pattern": "TODO", "path": "."}


def test_validate_arguments_reports_missing_required():
    result = _grep_tool().validate_arguments({})
    assert result.error.code == ToolErrorCodes.MISSING_REQUIRED_PARAMETER
    assert result.error.metadata["missing_parameters"] == ["pattern"]


def test_validate_arguments_checks_allowed_values():
    result = _grep_tool().validate_arguments({"pattern": "x", "mode": "slow"})
    assert result.error.code == ToolErrorCodes.PARAMETER_VALIDATION_FAILED
    assert result.error.metadata["parameter"] == "mode"


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

def test_coerce_payload_shapes():
    assert coerce_payload(None) is None
    assert coerce_payload("hi") == TextPayload("hi")
    assert coerce_payload({"a": 1}) == DocumentPayload({"a": 1})
    assert coerce_payload(bytearray(b"\x00\x01")) == BinaryPayload(b"\x00\x01")
    with pytest.raises(TypeError):
        coerce_payload(object())


def test_document_payload_holds_json_normalised_data():
    assert DocumentPayload({1: (2, 3)}).data == {"1": [2, 3]}
    assert coerce_payload([("a", 1)]) == DocumentPayload([["a", 1]])
    with pytest.raises(TypeError):
        coerce_payload({"tags": {"x", "y"}})


def test_payload_text_rendering():
    assert DocumentPayload({"b": 1, "a": 2}).as_text() == '{"a": 2, "b": 1}'
    assert BinaryPayload(b"abc", "image/png").as_text() == "<3 bytes of image/png>"


def test_binary_payload_dict_round_trip():
    payload = BinaryPayload(b"\xff\x00", "application/zip")
    assert payload_from_dict(payload.to_dict()) == payload


def test_payload_from_dict_unknown_kind():
    with pytest.raises(ValueError):
        payload_from_dict({"kind": "video"})


# ---------------------------------------------------------------------------
# ToolExecution
# ---------------------------------------------------------------------------

def test_execution_success_carries_call_details():
    call = ToolCall("grep", {"pattern": "x"}, session_id="s1")
    result = ToolExecution.success(call, "3 matches", duration_ms=12)
    execution = result.value
    assert execution.session_id == "s1"
    assert execution.tool_name == "grep"
    assert execution.duration_ms == 12.0
    assert execution.result_text() == "3 matches"


def test_execution_failure_metadata():
    call = ToolCall("grep", session_id="s1")
    result = ToolExecution.failure(call, ToolErrorCodes.EXECUTION_FAILED, "exit 2", duration_ms=3.5, metadata={"k": 1})
    meta = result.error.metadata
    assert meta["tool_name"] == "grep"
    assert meta["execution_duration_ms"] == 3.5
    assert meta["session_id"] == "s1"
    assert meta["k"] == 1


def test_execution_failure_requires_message():
    with pytest.raises(ValueError):
        ToolExecution.failure(ToolCall("grep"), ToolErrorCodes.EXECUTION_FAILED, " ")


@pytest.mark.parametrize("exc, code", [
    (asyncio.TimeoutError(), ToolErrorCodes.EXECUTION_TIMEOUT),
    (PermissionError("no"), ToolErrorCodes.ACCESS_DENIED),
    (FileNotFoundError("gone"), ToolErrorCodes.RESOURCE_NOT_FOUND),
    (ConnectionResetError("reset"), ToolErrorCodes.NETWORK_ERROR),
    (KeyError("k"), ToolErrorCodes.INVALID_PARAMETERS),
    (NotImplementedError(), ToolErrorCodes.OPERATION_NOT_SUPPORTED),
    (RuntimeError("x"), ToolErrorCodes.INVALID_OPERATION),
    (Exception("x"), ToolErrorCodes.EXECUTION_FAILED),
])
def test_exception_code_mapping(exc, code):
    assert tool_error_code_for_exception(exc) == code


def test_from_exception_uses_type_name_for_empty_message():
    result = ToolExecution.from_exception(ToolCall("grep"), NotImplementedError())
    assert result.error.message == "NotImplementedError"
    assert result.error.metadata["exception_type"] == "NotImplementedError"


def test_tool_call_dict_round_trip():
    call = ToolCall("grep", {"pattern": "x"}, session_id="s1", order=4)
    assert ToolCall.from_dict(call.to_dict()) == call


# ---------------------------------------------------------------------------
# AgentResponse
# ---------------------------------------------------------------------------

def test_create_error_surfaces_cause_and_stage():
    err = ResultError("LLM_TIMEOUT", "LLM request timed out", {"operation": "analyze_intent"})
    response = AgentResponse.create_error(err, "Failed to analyze user intent.", metadata={"session_id": "s1"})

    assert response.success is False
    assert response.type is ResponseType.ERROR
    assert response.content == (
        f"{ERROR_RESPONSE_CONTENT} Failed to analyze user intent. (LLM_TIMEOUT: LLM request timed out)"
    )
    assert response.error == "LLM request timed out"
    assert response.metadata["error_code"] == "LLM_TIMEOUT"
    assert response.metadata["error_metadata"] == {"operation": "analyze_intent"}
    assert response.metadata["session_id"] == "s1"


def test_response_with_metadata_is_a_copy():
    response = AgentResponse.create_success("ok", metadata={"a": 1})
    extended = response.with_metadata(b=2)
    assert extended.metadata == {"a": 1, "b": 2}
    assert response.metadata == {"a": 1}
