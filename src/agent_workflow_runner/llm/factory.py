"""Factory for the LLM-backed agent backend."""

import logging
from collections.abc import Callable

from agent_workflow_runner.llm.conversation import LLMConversationAdapter
from agent_workflow_runner.llm.llama_provider import LLaMAProvider
from agent_workflow_runner.llm.openai_provider import OpenAIProvider
from agent_workflow_runner.llm.provider import LLMProvider
from agent_workflow_runner.orchestrator.config import LLMConfig

logger = logging.getLogger(__name__)

_PROVIDERS: dict[str, Callable[[LLMConfig], LLMProvider]] = {
    "openai": OpenAIProvider,
    "llama": LLaMAProvider,
}


class LLMFactory:
    """Factory for creating LLM providers and conversation backends."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Create an LLM provider based on configuration.

        Raises:
            ValueError: If the provider is not supported or is misconfigured.
        """
        logger.info("Creating LLM provider", extra={"provider": config.provider})

        provider_cls = _PROVIDERS.get(config.provider)
        if provider_cls is None:
            raise ValueError(f"Unsupported LLM provider: {config.provider}")
        return provider_cls(config)

    @classmethod
    def conversation_backend(cls, config: LLMConfig) -> LLMConversationAdapter:
        """An in-process conversation backend answering with the configured provider.

        The caller wires `on_turn_complete` once the orchestrator exists.
        """
        return LLMConversationAdapter(cls.create(config), system_prompt=config.system_prompt)
