"""Configuration for the local-first workflow runner.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Agent backend settings live in a nested :class:`LLMConfig` with its own
`WORKFLOW_LLM_` prefix so they can be set independently.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """Configuration for the LLM-backed agent."""

    provider: Literal["openai", "llama"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    # OpenAI settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )

    # LLaMA settings
    llama_model_path: Path | None = Field(
        default=None,
        description="Path to LLaMA model file",
    )
    llama_n_ctx: int = Field(
        default=4096,
        gt=0,
        description="Context window size for LLaMA",
    )
    llama_n_threads: int | None = Field(
        default=None,
        description="Number of threads for LLaMA (None = auto)",
    )
    llama_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for LLaMA model",
    )

    system_prompt: str | None = Field(
        default=None,
        description="Optional system message prepended to every conversation",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_LLM_",
        env_file=".env",
        extra="ignore",
    )


class WorkflowRunnerSettings(BaseSettings):
    """Settings for the workflow runner.

    Environment variables:
    - LOG_LEVEL                      (optional)
    - WORKFLOW_SPACES_ROOT           (optional)
    - WORKFLOW_LOCALE                (optional)
    - WORKFLOW_RUN_TIMEOUT_SECONDS   (optional, 0 disables the per-turn deadline)
    - WORKFLOW_LLM_*                 (see :class:`LLMConfig`)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkflowRunnerSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    spaces_root: Path = Field(
        default=Path("spaces"),
        validation_alias="WORKFLOW_SPACES_ROOT",
        description="Directory holding one sub-directory per space",
    )

    locale: str = Field(
        default="en",
        validation_alias="WORKFLOW_LOCALE",
        description="Locale passed to resource catalogs",
    )

    run_timeout_seconds: float = Field(
        default=0.0,
        ge=0.0,
        validation_alias="WORKFLOW_RUN_TIMEOUT_SECONDS",
        description=(
            "Deadline (seconds) for each agent turn sent by a run. When exceeded the run ends "
            "with a timeout failure. 0 disables the deadline."
        ),
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )
