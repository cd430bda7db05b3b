"""LLM package initialization."""

from agent_workflow_runner.llm.conversation import LLMConversationAdapter
from agent_workflow_runner.llm.factory import LLMFactory
from agent_workflow_runner.llm.provider import LLMProvider

__all__ = [
    "LLMConversationAdapter",
    "LLMFactory",
    "LLMProvider",
]
