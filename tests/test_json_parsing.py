"""Tests for best-effort JSON extraction from model output."""
from __future__ import annotations

from agent_conductor.application.json_parsing import extract_json, extract_json_object


def test_bare_json():
    ok, value, err = extract_json('{"intent": "refactor"}')
    assert ok and value == {"intent": "refactor"} and err == ""


def test_fenced_json():
    text = 'Here you go:\n```json\n{"intent": "run_tests", "confidence": "high"}\n```'
    assert extract_json_object(text) == {"intent": "run_tests", "confidence": "high"}


def test_no_object():
    assert extract_json("no braces here") == (False, None, "No JSON object found")
    assert extract_json("  ")[2] == "Empty text"


def test_broken_object():
    ok, value, err = extract_json("{intent: refactor}")
    assert not ok and value is None
    assert err.startswith("Failed to parse JSON")


def test_non_dict_is_rejected_by_object_helper():
    assert extract_json("[1, 2]") == (True, [1, 2], "")
    assert extract_json_object("[1, 2]") is None
