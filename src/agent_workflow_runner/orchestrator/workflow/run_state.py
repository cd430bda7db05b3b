"""The record of the workflow run currently executing.

`WorkflowRunState` is immutable; every change produces a new snapshot that
replaces the previous one in :class:`RunStateStore`, so readers never observe a
half-applied update.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum

from .collaborators import ConversationAdapter
from .models import WorkflowDefinition, WorkflowStep


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class RunPhase(str, Enum):
    STEP = "step"
    SUMMARY = "summary"
    SUMMARY_INJECT = "summary-inject"


class RunFailure(str, Enum):
    """Why a run ended before completing all of its steps."""

    BUILD_ERROR = "build_error"
    SUMMARY_EXTRACTION_ERROR = "summary_extraction_error"
    CONVERSATION_CREATE_ERROR = "conversation_create_error"
    SEND_ERROR = "send_error"
    TIMEOUT = "timeout"


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass(frozen=True, slots=True)
class StepRunState:
    id: str
    status: StepStatus = StepStatus.PENDING
    output: str | None = None
    started_at: str | None = None
    ended_at: str | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"id": self.id, "status": self.status.value}
        if self.output is not None:
            out["output"] = self.output
        if self.started_at is not None:
            out["startedAt"] = self.started_at
        if self.ended_at is not None:
            out["endedAt"] = self.ended_at
        return out


@dataclass(frozen=True, slots=True)
class WorkflowRunState:
    run_id: str
    workflow: WorkflowDefinition
    space_id: str
    conversation_id: str
    steps: tuple[StepRunState, ...]
    started_at: str
    current_step_index: int = 0
    is_running: bool = True
    phase: RunPhase = RunPhase.STEP
    summary_text: str | None = None
    ended_at: str | None = None
    failure: RunFailure | None = None

    @staticmethod
    def start(
        *, run_id: str, workflow: WorkflowDefinition, space_id: str, conversation_id: str
    ) -> WorkflowRunState:
        return WorkflowRunState(
            run_id=run_id,
            workflow=workflow,
            space_id=space_id,
            conversation_id=conversation_id,
            steps=tuple(StepRunState(id=step.id) for step in workflow.steps),
            started_at=utc_now_iso(),
        )

    @property
    def current_step(self) -> WorkflowStep | None:
        if 0 <= self.current_step_index < len(self.workflow.steps):
            return self.workflow.steps[self.current_step_index]
        return None

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index + 1 >= len(self.workflow.steps)

    def with_step(self, index: int, **changes: object) -> WorkflowRunState:
        """Return a copy with `steps[index]` updated; out-of-range indices are ignored."""

        if not 0 <= index < len(self.steps):
            return self
        steps = list(self.steps)
        steps[index] = replace(steps[index], **changes)
        return replace(self, steps=tuple(steps))

    def ended(self, *, failure: RunFailure | None = None) -> WorkflowRunState:
        return replace(self, is_running=False, ended_at=utc_now_iso(), failure=failure)

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {
            "runId": self.run_id,
            "workflowId": self.workflow.id,
            "spaceId": self.space_id,
            "conversationId": self.conversation_id,
            "currentStepIndex": self.current_step_index,
            "steps": [s.to_json() for s in self.steps],
            "isRunning": self.is_running,
            "phase": self.phase.value,
            "startedAt": self.started_at,
        }
        if self.summary_text is not None:
            out["summaryText"] = self.summary_text
        if self.ended_at is not None:
            out["endedAt"] = self.ended_at
        if self.failure is not None:
            out["failure"] = self.failure.value
        return out


RunListener = Callable[[WorkflowRunState | None], None]


class RunStateStore:
    """Single source of truth for the active run of one orchestrator."""

    def __init__(self, conversations: ConversationAdapter) -> None:
        self._conversations = conversations
        self._run: WorkflowRunState | None = None
        self._listeners: list[RunListener] = []

    def get(self) -> WorkflowRunState | None:
        return self._run

    def set(self, run: WorkflowRunState | None) -> None:
        self._run = run
        for listener in list(self._listeners):
            listener(run)

    def subscribe(self, listener: RunListener) -> Callable[[], None]:
        """Call `listener` with every new snapshot. Returns an unsubscribe function."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def last_assistant_text(self, conversation_id: str) -> str | None:
        conversation = self._conversations.get_cached_conversation(conversation_id)
        if conversation is None:
            return None
        for message in reversed(conversation.messages):
            if message.role == "assistant":
                return message.content.strip()
        return None
