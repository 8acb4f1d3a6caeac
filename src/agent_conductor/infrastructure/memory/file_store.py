"""JSON-file session history store.

One file per session at ``{root}/{session_id}.json``.  Saves are atomic
(write-to-tmp + ``os.replace``) so a crash never leaves a half-written history
and concurrent saves for one session are last-writer-wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import uuid
from pathlib import Path
from typing import List, Sequence

from agent_conductor.domain import Result, ToolExecution

from .history_codec import decode_history, encode_history

logger = logging.getLogger(__name__)

_SAFE_SESSION_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileLongTermMemory:
    """``LongTermMemory`` persisted as JSON files under ``root``."""

    def __init__(self, root: str) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, session_id: str) -> Path:
        if not _SAFE_SESSION_ID.match(session_id) or session_id in (".", ".."):
            raise ValueError(f"Invalid session id for file storage: {session_id!r}")
        return self._root / f"{session_id}.json"

    def _read(self, path: Path) -> List[Result[ToolExecution]]:
        if not path.exists():
            return []
        return decode_history(json.loads(path.read_text(encoding="utf-8")))

    def _write(self, session_id: str, path: Path, history: Sequence[Result[ToolExecution]]) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        # Unique tmp name per write so concurrent saves never share a tmp file.
        tmp_file = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        data = encode_history(session_id, history)
        try:
            tmp_file.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_file, path)
        finally:
            if tmp_file.exists():
                tmp_file.unlink()

    async def load_history(self, session_id: str) -> List[Result[ToolExecution]]:
        path = self._path(session_id)
        history = await asyncio.to_thread(self._read, path)
        logger.debug("Loaded %d entries for session %s from %s", len(history), session_id, path)
        return history

    async def save_history(self, session_id: str, history: Sequence[Result[ToolExecution]]) -> None:
        path = self._path(session_id)
        await asyncio.to_thread(self._write, session_id, path, tuple(history))
        logger.debug("Saved %d entries for session %s to %s", len(history), session_id, path)

    def session_ids(self) -> List[str]:
        if not self._root.is_dir():
            return []
        return sorted(p.stem for p in self._root.glob("*.json"))
