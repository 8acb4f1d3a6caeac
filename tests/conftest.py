"""Pytest fixtures and helpers for agent-conductor tests."""
from __future__ import annotations

from pathlib import Path

import pytest

# Repo root (parent of tests/)
REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture(autouse=True)
def _reset_config_cache():
    """Clear the load_config LRU cache and reset _env before (and after) every test.

    Each test gets a fresh config load, so monkeypatching CONDUCTOR_CONFIG_PATH
    works without tests bleeding into each other.
    """
    from agent_conductor.config import loader as config_loader
    config_loader.load_config.cache_clear()
    config_loader._env = None
    yield
    config_loader.load_config.cache_clear()
    config_loader._env = None


@pytest.fixture(autouse=True)
def _reset_tracer():
    from agent_conductor.infrastructure.telemetry import reset_for_testing
    reset_for_testing()
    yield
    reset_for_testing()
