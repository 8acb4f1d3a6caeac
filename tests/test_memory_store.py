"""Tests for the session history stores and the history codec."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import pytest

from agent_conductor.config import MemoryConfig
from agent_conductor.domain import BinaryPayload, DocumentPayload, ToolCall, ToolErrorCodes, ToolExecution
from agent_conductor.infrastructure.memory import (
    InMemoryLongTermMemory,
    JsonFileLongTermMemory,
    build_memory,
)
from agent_conductor.infrastructure.memory.history_codec import decode_history, encode_history


def _history():
    return [
        ToolExecution.success(ToolCall("ls", {"path": "."}, session_id="s1", order=0), ["a.py", "b.py"], duration_ms=3.0),
        ToolExecution.success(ToolCall("screenshot", session_id="s1", order=1), BinaryPayload(b"\x89PNG", "image/png")),
        ToolExecution.failure(ToolCall("grep", session_id="s1", order=2), ToolErrorCodes.EXECUTION_TIMEOUT, "too slow"),
    ]


def test_build_memory_selects_backend(tmp_path):
    assert isinstance(build_memory(MemoryConfig()), InMemoryLongTermMemory)
    store = build_memory(MemoryConfig(backend="file", path=str(tmp_path)))
    assert isinstance(store, JsonFileLongTermMemory)
    assert store.root == tmp_path


@pytest.mark.asyncio
async def test_in_memory_store_copies_history():
    store = InMemoryLongTermMemory()
    history = _history()
    await store.save_history("s1", history)
    history.clear()

    loaded = await store.load_history("s1")
    assert len(loaded) == 3
    loaded.clear()
    assert len(await store.load_history("s1")) == 3
    assert await store.load_history("unknown") == []


@pytest.mark.asyncio
async def test_file_store_round_trip(tmp_path):
    store = JsonFileLongTermMemory(str(tmp_path / "sessions"))
    original = _history()
    await store.save_history("s1", original)

    loaded = await store.load_history("s1")
    assert loaded == original
    assert loaded[1].value.payload == BinaryPayload(b"\x89PNG", "image/png")
    assert store.session_ids() == ["s1"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [{1: "a"}, {"pair": (1, 2)}, [{"nested": {2: [3, (4, 5)]}}], {True: None}],
)
async def test_file_store_round_trip_of_non_json_native_documents(tmp_path, data):
    store = JsonFileLongTermMemory(str(tmp_path))
    history = [ToolExecution.success(ToolCall("t", session_id="s"), data)]
    await store.save_history("s", history)
    assert await store.load_history("s") == history


def test_unencodable_document_is_rejected_before_it_reaches_a_store():
    with pytest.raises(TypeError, match="not JSON-serialisable"):
        ToolExecution.success(ToolCall("t", session_id="s"), {"at": datetime.now(timezone.utc)})
    with pytest.raises(TypeError):
        DocumentPayload({"ratio": float("nan")})


@pytest.mark.asyncio
async def test_file_store_save_overwrites_whole_history(tmp_path):
    store = JsonFileLongTermMemory(str(tmp_path))
    await store.save_history("s1", _history())
    await store.save_history("s1", _history()[:1])
    assert len(await store.load_history("s1")) == 1
    assert [p.name for p in tmp_path.iterdir()] == ["s1.json"]


@pytest.mark.asyncio
async def test_file_store_concurrent_saves_leave_one_complete_file(tmp_path):
    store = JsonFileLongTermMemory(str(tmp_path))
    full, short = _history(), _history()[:1]
    await asyncio.gather(*(store.save_history("s1", h) for h in (full, short) * 5))

    loaded = await store.load_history("s1")
    assert len(loaded) in (1, 3)
    assert not list(tmp_path.glob("*.tmp"))


@pytest.mark.asyncio
async def test_file_store_missing_session_is_empty(tmp_path):
    store = JsonFileLongTermMemory(str(tmp_path / "nope"))
    assert await store.load_history("s1") == []
    assert store.session_ids() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("session_id", ["../escape", "a/b", "", ".."])
async def test_file_store_rejects_unsafe_session_ids(tmp_path, session_id):
    store = JsonFileLongTermMemory(str(tmp_path))
    with pytest.raises(ValueError):
        await store.load_history(session_id)


def test_encoded_history_is_plain_json():
    original = _history()
    data = encode_history("s1", original)
    assert data["version"] == 1
    assert data["session_id"] == "s1"
    assert [e["ok"] for e in data["entries"]] == [True, True, False]
    assert data["entries"][1]["execution"]["payload"]["data"] == "iVBORw=="
    assert decode_history(json.loads(json.dumps(data))) == original


def test_decode_rejects_unknown_version():
    with pytest.raises(ValueError, match="Unsupported history format version"):
        decode_history({"version": 99, "entries": []})
