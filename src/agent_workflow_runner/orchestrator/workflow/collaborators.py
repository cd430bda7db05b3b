"""Contracts for the collaborators the run engine talks to.

The engine never reaches into a concrete store, catalog or agent backend; it is
handed objects satisfying these protocols. The JSON store, the directory
catalog and the LLM adapter in this project are one set of implementations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from .models import WorkflowDefinition, WorkflowMeta

T = TypeVar("T")

# Marks messages sent by a workflow run, as opposed to typed by a user.
WORKFLOW_STEP_ORIGIN = "workflow-step"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Success/data/error envelope returned by stores and catalogs."""

    success: bool
    data: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, data: T) -> StoreResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> StoreResult[T]:
        return cls(success=False, error=error)


@dataclass(frozen=True, slots=True)
class ResourceRef:
    """A skill, agent or command as listed by a catalog."""

    name: str
    namespace: str | None = None


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    role: str
    content: str


@dataclass(frozen=True, slots=True)
class Conversation:
    id: str
    space_id: str
    title: str
    messages: tuple[ConversationMessage, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class SendOptions:
    thinking_enabled: bool | None = None
    ai_browser_enabled: bool | None = None
    origin: str = WORKFLOW_STEP_ORIGIN


class ConversationCreateError(RuntimeError):
    """The agent backend could not open a new conversation."""


class WorkflowStore(Protocol):
    def list(self, space_id: str) -> StoreResult[list[WorkflowMeta]]: ...

    def get(self, space_id: str, workflow_id: str) -> StoreResult[WorkflowDefinition]: ...

    def create(
        self, space_id: str, data: dict[str, Any]
    ) -> StoreResult[WorkflowDefinition]: ...

    def update(
        self, space_id: str, workflow_id: str, patch: dict[str, Any]
    ) -> StoreResult[WorkflowDefinition]: ...

    def delete(self, space_id: str, workflow_id: str) -> StoreResult[bool]: ...


class ResourceCatalog(Protocol):
    def list_skills(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]: ...

    def list_agents(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]: ...

    def list_commands(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]: ...


class ConversationAdapter(Protocol):
    """The conversational agent backend.

    `send_message` is fire-and-forget: it returns once the message is accepted,
    and the end of the agent's turn is reported later as an
    :class:`~agent_workflow_runner.orchestrator.workflow.events.AgentTurnCompleted`.
    """

    async def create_conversation(self, space_id: str, title: str) -> Conversation:
        """Raises ConversationCreateError on failure."""
        ...

    async def send_message(
        self, space_id: str, conversation_id: str, text: str, options: SendOptions
    ) -> None: ...

    async def stop_generation(self, conversation_id: str) -> None: ...

    def get_cached_conversation(self, conversation_id: str) -> Conversation | None: ...
