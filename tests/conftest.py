"""Test configuration and fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import pytest

from agent_workflow_runner.llm.provider import LLMProvider
from agent_workflow_runner.orchestrator.workflow.collaborators import (
    Conversation,
    ConversationCreateError,
    ConversationMessage,
    ResourceRef,
    SendOptions,
    StoreResult,
)
from agent_workflow_runner.orchestrator.workflow.models import WorkflowDefinition, WorkflowMeta
from agent_workflow_runner.orchestrator.workflow.orchestrator import WorkflowOrchestrator


@dataclass(frozen=True)
class SentMessage:
    space_id: str
    conversation_id: str
    text: str
    options: SendOptions


class FakeConversations:
    """Records every call; replies are added explicitly by the test."""

    def __init__(self) -> None:
        self.conversations: dict[str, Conversation] = {}
        self.created: list[tuple[str, str]] = []
        self.sent: list[SentMessage] = []
        self.stopped: list[str] = []
        self.fail_create = False
        self.fail_send = False

    async def create_conversation(self, space_id: str, title: str) -> Conversation:
        if self.fail_create:
            raise ConversationCreateError("backend unavailable")
        conversation = Conversation(
            id=f"conv-{len(self.conversations) + 1}", space_id=space_id, title=title
        )
        self.conversations[conversation.id] = conversation
        self.created.append((space_id, title))
        return conversation

    async def send_message(
        self, space_id: str, conversation_id: str, text: str, options: SendOptions
    ) -> None:
        if self.fail_send:
            raise RuntimeError("send failed")
        self.sent.append(SentMessage(space_id, conversation_id, text, options))
        self._append(conversation_id, "user", text)

    async def stop_generation(self, conversation_id: str) -> None:
        self.stopped.append(conversation_id)

    def get_cached_conversation(self, conversation_id: str) -> Conversation | None:
        return self.conversations.get(conversation_id)

    def reply(self, conversation_id: str, content: str) -> None:
        self._append(conversation_id, "assistant", content)

    def _append(self, conversation_id: str, role: str, content: str) -> None:
        conversation = self.conversations[conversation_id]
        self.conversations[conversation_id] = replace(
            conversation,
            messages=(*conversation.messages, ConversationMessage(role=role, content=content)),
        )


@dataclass
class InMemoryWorkflowStore:
    workflows: dict[str, WorkflowDefinition] = field(default_factory=dict)
    updates: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def list(self, space_id: str) -> StoreResult[list[WorkflowMeta]]:
        return StoreResult.ok([w.to_meta() for w in self.workflows.values()])

    def get(self, space_id: str, workflow_id: str) -> StoreResult[WorkflowDefinition]:
        workflow = self.workflows.get(workflow_id)
        if workflow is None:
            return StoreResult.fail(f"Workflow not found: {workflow_id}")
        return StoreResult.ok(workflow)

    def create(self, space_id: str, data: dict[str, Any]) -> StoreResult[WorkflowDefinition]:
        workflow = WorkflowDefinition.model_validate(
            {"id": f"wf-{len(self.workflows) + 1}", "spaceId": space_id, **data}
        )
        self.workflows[workflow.id] = workflow
        return StoreResult.ok(workflow)

    def update(
        self, space_id: str, workflow_id: str, patch: dict[str, Any]
    ) -> StoreResult[WorkflowDefinition]:
        existing = self.workflows.get(workflow_id)
        if existing is None:
            return StoreResult.fail(f"Workflow not found: {workflow_id}")
        self.updates.append((workflow_id, patch))
        updated = WorkflowDefinition.model_validate({**existing.to_json(), **patch})
        self.workflows[workflow_id] = updated
        return StoreResult.ok(updated)

    def delete(self, space_id: str, workflow_id: str) -> StoreResult[bool]:
        if self.workflows.pop(workflow_id, None) is None:
            return StoreResult.fail(f"Workflow not found: {workflow_id}")
        return StoreResult.ok(True)


@dataclass
class StaticCatalog:
    skills: list[ResourceRef] = field(default_factory=list)
    agents: list[ResourceRef] = field(default_factory=list)
    commands: list[ResourceRef] = field(default_factory=list)

    def list_skills(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]:
        return StoreResult.ok(self.skills)

    def list_agents(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]:
        return StoreResult.ok(self.agents)

    def list_commands(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]:
        return StoreResult.ok(self.commands)


def workflow_from_steps(
    steps: Sequence[dict[str, Any]], *, workflow_id: str = "wf-1", name: str = "flow", **extra: Any
) -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(
        {
            "id": workflow_id,
            "spaceId": "space-1",
            "name": name,
            "steps": [{"id": f"step-{i + 1}", **step} for i, step in enumerate(steps)],
            **extra,
        }
    )


@pytest.fixture
def make_workflow() -> Callable[..., WorkflowDefinition]:
    return workflow_from_steps


@pytest.fixture
def conversations() -> FakeConversations:
    return FakeConversations()


@pytest.fixture
def workflow_store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def catalog() -> StaticCatalog:
    return StaticCatalog()


@pytest.fixture
def make_orchestrator(
    conversations: FakeConversations,
    workflow_store: InMemoryWorkflowStore,
    catalog: StaticCatalog,
) -> Callable[..., WorkflowOrchestrator]:
    """Build an orchestrator whose store holds a workflow made of `steps`."""

    def _make(
        steps: Sequence[dict[str, Any]], *, run_timeout_seconds: float = 0.0, **extra: Any
    ) -> WorkflowOrchestrator:
        workflow = workflow_from_steps(steps, **extra)
        workflow_store.workflows[workflow.id] = workflow
        return WorkflowOrchestrator(
            workflows=workflow_store,
            catalog=catalog,
            conversations=conversations,
            run_timeout_seconds=run_timeout_seconds,
        )

    return _make


@pytest.fixture
def spaces_root(tmp_path: Path) -> Path:
    """A spaces root holding one empty space, `space-1`."""

    root = tmp_path / "spaces"
    (root / "space-1").mkdir(parents=True)
    return root


class GatedConversations(FakeConversations):
    """Blocks every `create_conversation` after the first until `gate` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.waiting = asyncio.Event()

    async def create_conversation(self, space_id: str, title: str) -> Conversation:
        if self.created:
            self.waiting.set()
            await self.gate.wait()
        return await super().create_conversation(space_id, title)


@pytest.fixture
def gated_conversations() -> GatedConversations:
    return GatedConversations()


class ScriptedProvider(LLMProvider):
    """Replies from a fixed script, in order; records every history it saw."""

    def __init__(self, replies: Sequence[str | Exception]) -> None:
        self.replies = list(replies)
        self.histories: list[list[dict[str, str]]] = []

    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        self.histories.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def make_provider() -> Callable[..., ScriptedProvider]:
    return ScriptedProvider
