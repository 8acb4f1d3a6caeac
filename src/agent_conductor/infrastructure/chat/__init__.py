"""LLM client factory: build the right ChatClient for a ModelConfig."""

from __future__ import annotations

from agent_conductor.application.ports import ChatClient
from agent_conductor.config.schema import ModelConfig
from agent_conductor.domain import ConfigurationError


def build_chat_client(model_config: ModelConfig) -> ChatClient:
    """Return the ``ChatClient`` implementation for *model_config*.

    ``"generic"``
        :class:`~agent_conductor.infrastructure.chat.generic.GenericChatClient`,
        an OpenAI-compatible client for cloud providers and local servers.

    Raises:
        ConfigurationError: For unknown backend values.
    """
    backend = model_config.backend
    if backend == "generic":
        from agent_conductor.infrastructure.chat.generic import GenericChatClient
        return GenericChatClient(
            base_url=model_config.base_url,
            api_key=model_config.api_key,
            timeout_s=model_config.timeout_s,
        )
    raise ConfigurationError(
        f"Unknown LLM backend {backend!r}. Supported backends: 'generic' (OpenAI-compatible)."
    )
