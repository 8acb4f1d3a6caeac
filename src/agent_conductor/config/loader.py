"""Load config from CONDUCTOR_CONFIG_PATH or return default.

``load_config()`` is memoised with ``functools.lru_cache`` so the file is read
and parsed at most once per process.  Call ``load_config.cache_clear()`` to
force a re-read (useful in tests and when ``CONDUCTOR_CONFIG_PATH`` changes at
runtime).
"""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .schema import ConductorConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)


class _Env(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CONDUCTOR_", extra="ignore")
    config_path: Optional[str] = None


_env: Optional[_Env] = None


def _get_env() -> _Env:
    global _env
    if _env is None:
        _env = _Env()
    return _env


@functools.lru_cache(maxsize=1)
def load_config() -> ConductorConfig:
    """Load config from CONDUCTOR_CONFIG_PATH if set and valid; else return DEFAULT_CONFIG.

    Result is cached for the lifetime of the process.  Call
    ``load_config.cache_clear()`` to force a reload.

    Raises:
        pydantic.ValidationError: The file exists but does not match the schema.
        json.JSONDecodeError: The file exists but is not valid JSON.
    """
    path = _get_env().config_path
    if not path or not path.strip():
        return DEFAULT_CONFIG
    p = Path(path).expanduser().resolve()
    if not p.is_file():
        logger.warning("CONDUCTOR_CONFIG_PATH %s is not a file; using default config", p)
        return DEFAULT_CONFIG
    data = json.loads(p.read_text(encoding="utf-8"))
    logger.debug("Loaded config from %s", p)
    return ConductorConfig.model_validate(data)
