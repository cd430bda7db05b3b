"""Local LLaMA LLM provider implementation."""

import logging
from typing import Any

from agent_workflow_runner.llm.provider import LLMProvider
from agent_workflow_runner.orchestrator.config import LLMConfig

logger = logging.getLogger(__name__)


class LLaMAProvider(LLMProvider):
    """Local LLaMA model provider, for running workflows offline.

    Requires the `llama` extra:
        pip install 'agent-workflow-runner[llama]'
    """

    def __init__(self, config: LLMConfig) -> None:
        """Load the model named by `config.llama_model_path`.

        Raises:
            ValueError: If model path is not provided.
            ImportError: If llama-cpp-python is not installed.
        """
        if not config.llama_model_path:
            raise ValueError("LLaMA model path is required (WORKFLOW_LLM_LLAMA_MODEL_PATH)")

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise ImportError(
                "llama-cpp-python is required for the LLaMA provider. "
                "Install it with: pip install 'agent-workflow-runner[llama]'"
            ) from e

        logger.info("Loading LLaMA model", extra={"model_path": str(config.llama_model_path)})

        self.temperature = config.llama_temperature
        self.llm = Llama(
            model_path=str(config.llama_model_path),
            n_ctx=config.llama_n_ctx,
            n_threads=config.llama_n_threads,
            verbose=False,
        )

    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        result = self.llm.create_chat_completion(
            messages=messages,  # type: ignore[arg-type]
            max_tokens=max_tokens or 1024,
            temperature=temperature if temperature is not None else self.temperature,
            **kwargs,
        )
        content = result["choices"][0]["message"]["content"]  # type: ignore[index]
        return content or ""
