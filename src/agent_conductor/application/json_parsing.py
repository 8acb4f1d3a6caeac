"""Extract a single JSON object from model output (best-effort)."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple


def extract_json(text: str) -> Tuple[bool, Any, str]:
    """
    Try to parse a top-level JSON object from text.
    Returns (ok, parsed_value, error_message).

    Handles bare JSON, JSON inside a fenced code block, and JSON surrounded by prose.
    """
    if not text or not text.strip():
        return False, None, "Empty text"
    try:
        return True, json.loads(text), ""
    except ValueError:
        pass
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return False, None, "No JSON object found"
    try:
        return True, json.loads(text[start : end + 1]), ""
    except ValueError as e:
        return False, None, f"Failed to parse JSON: {e}"


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Like ``extract_json`` but only accepts a dict; returns None otherwise."""
    ok, value, _ = extract_json(text)
    if ok and isinstance(value, dict):
        return value
    return None
