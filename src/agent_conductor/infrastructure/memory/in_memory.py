"""Process-local session history store."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from agent_conductor.domain import Result, ToolExecution


class InMemoryLongTermMemory:
    """Dict-backed ``LongTermMemory``.  Each save replaces the session's history wholesale.

    Lists are copied on the way in and out, so callers can never mutate the
    stored history.
    """

    def __init__(self) -> None:
        self._store: Dict[str, Tuple[Result[ToolExecution], ...]] = {}

    async def load_history(self, session_id: str) -> List[Result[ToolExecution]]:
        return list(self._store.get(session_id, ()))

    async def save_history(self, session_id: str, history: Sequence[Result[ToolExecution]]) -> None:
        self._store[session_id] = tuple(history)

    def session_ids(self) -> List[str]:
        return list(self._store)
