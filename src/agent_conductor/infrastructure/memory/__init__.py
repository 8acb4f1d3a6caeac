"""Long-term memory: session history stores and their factory."""

from __future__ import annotations

from typing import Union

from agent_conductor.config.schema import MemoryConfig

from .file_store import JsonFileLongTermMemory
from .in_memory import InMemoryLongTermMemory


def build_memory(config: MemoryConfig) -> Union[InMemoryLongTermMemory, JsonFileLongTermMemory]:
    """Return the ``LongTermMemory`` implementation selected by ``config.backend``."""
    if config.backend == "file":
        return JsonFileLongTermMemory(config.path)
    return InMemoryLongTermMemory()


__all__ = ["InMemoryLongTermMemory", "JsonFileLongTermMemory", "build_memory"]
