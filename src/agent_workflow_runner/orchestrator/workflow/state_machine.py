"""Phase transitions of a workflow run.

A run moves through three phases, driven only by "agent turn completed"
events:

    step ──(step done, summarize_after)──▶ summary
      ▲                                       │ (summary read, new conversation)
      │                                       ▼
      └────────(acknowledged)──────────── summary-inject

`step` may also loop to itself when a step completes without summarization.
The run ends (``is_running = False``) from any phase: after the last step,
on a failure, or when stopped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from .collaborators import (
    ConversationAdapter,
    ConversationCreateError,
    SendOptions,
)
from .events import AgentTurnCompleted
from .messages import (
    SUMMARY_PROMPT,
    build_step_message,
    build_summary_injection_message,
    handoff_conversation_title,
)
from .run_state import (
    RunFailure,
    RunPhase,
    RunStateStore,
    StepStatus,
    WorkflowRunState,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[RunPhase, set[RunPhase]] = {
    RunPhase.STEP: {RunPhase.STEP, RunPhase.SUMMARY},
    RunPhase.SUMMARY: {RunPhase.SUMMARY_INJECT},
    RunPhase.SUMMARY_INJECT: {RunPhase.STEP},
}

# Summary and handoff turns never enable optional agent features.
_HANDOFF_OPTIONS = SendOptions(thinking_enabled=False, ai_browser_enabled=False)


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: WorkflowRunState, to: RunPhase, **changes: object) -> WorkflowRunState:
    allowed = ALLOWED_TRANSITIONS.get(current.phase, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.phase.value} -> {to.value}")
    return replace(current, phase=to, **changes)


def _ctx(run: WorkflowRunState) -> dict[str, object]:
    return {
        "run_id": run.run_id,
        "workflow_id": run.workflow.id,
        "space_id": run.space_id,
        "conversation_id": run.conversation_id,
        "step_index": run.current_step_index,
        "phase": run.phase.value,
    }


class PhaseTransitionEngine:
    """Advance the active run in response to completion events.

    Callers must serialize `start_step` and `on_agent_complete`; the engine
    itself is not re-entrant. Between awaits it only writes to the store if
    the run it started from is still the active, running one.
    """

    def __init__(
        self,
        store: RunStateStore,
        conversations: ConversationAdapter,
        *,
        on_message_sent: Callable[[WorkflowRunState], None] | None = None,
    ) -> None:
        self._store = store
        self._conversations = conversations
        self._on_message_sent = on_message_sent
        self._handlers: dict[RunPhase, Callable[[WorkflowRunState], Awaitable[None]]] = {
            RunPhase.STEP: self._complete_step,
            RunPhase.SUMMARY: self._complete_summary,
            RunPhase.SUMMARY_INJECT: self._complete_injection,
        }

    def accepts(self, event: AgentTurnCompleted) -> bool:
        """Whether `event` belongs to the active run's current conversation."""

        run = self._store.get()
        return (
            run is not None
            and run.is_running
            and event.conversation_id == run.conversation_id
            and event.space_id == run.space_id
        )

    def _is_current(self, run: WorkflowRunState) -> bool:
        latest = self._store.get()
        return latest is not None and latest.run_id == run.run_id and latest.is_running

    async def start_step(self) -> None:
        run = self._store.get()
        if run is None or not run.is_running or run.phase is not RunPhase.STEP:
            return
        step = run.current_step
        if step is None:
            return

        index = run.current_step_index
        run = run.with_step(index, status=StepStatus.RUNNING, started_at=utc_now_iso())

        message = build_step_message(step)
        if not message:
            logger.warning("Workflow step has nothing to send; ending run", extra=_ctx(run))
            run = run.with_step(index, status=StepStatus.ERROR, ended_at=utc_now_iso())
            self._store.set(run.ended(failure=RunFailure.BUILD_ERROR))
            return

        self._store.set(run)
        logger.info(
            "Workflow step started", extra={**_ctx(run), "step_kind": step.kind.value}
        )

        settings = run.workflow.settings
        await self._send(
            run,
            message,
            SendOptions(
                thinking_enabled=settings.thinking_enabled if settings else None,
                ai_browser_enabled=settings.ai_browser_enabled if settings else None,
            ),
        )

    async def on_agent_complete(self, event: AgentTurnCompleted) -> None:
        run = self._store.get()
        if run is None or not self.accepts(event):
            return
        await self._handlers[run.phase](run)

    async def _complete_step(self, run: WorkflowRunState) -> None:
        index = run.current_step_index
        step = run.current_step
        if step is not None:
            run = run.with_step(
                index,
                status=StepStatus.COMPLETED,
                output=self._store.last_assistant_text(run.conversation_id),
                ended_at=utc_now_iso(),
            )
            logger.info("Workflow step completed", extra=_ctx(run))

        if step is not None and step.summarize_after and not run.is_last_step:
            run = transition(current=run, to=RunPhase.SUMMARY)
            self._store.set(run)
            logger.info("Requesting handoff summary", extra=_ctx(run))
            await self._send(run, SUMMARY_PROMPT, _HANDOFF_OPTIONS)
            return

        await self._advance(run)

    async def _complete_summary(self, run: WorkflowRunState) -> None:
        index = run.current_step_index
        summary = self._store.last_assistant_text(run.conversation_id)
        if not summary:
            logger.warning("No summary to hand off; ending run", extra=_ctx(run))
            run = run.with_step(index, status=StepStatus.ERROR, ended_at=utc_now_iso())
            self._store.set(run.ended(failure=RunFailure.SUMMARY_EXTRACTION_ERROR))
            return

        title = handoff_conversation_title(run.workflow.name, index + 1)
        try:
            conversation = await self._conversations.create_conversation(run.space_id, title)
        except ConversationCreateError:
            logger.exception("Failed to create handoff conversation", extra=_ctx(run))
            if self._is_current(run):
                self._store.set(run.ended(failure=RunFailure.CONVERSATION_CREATE_ERROR))
            return

        if not self._is_current(run):
            logger.info("Run ended during handoff; dropping new conversation", extra=_ctx(run))
            return

        run = transition(
            current=run,
            to=RunPhase.SUMMARY_INJECT,
            conversation_id=conversation.id,
            summary_text=summary,
        )
        self._store.set(run)
        logger.info("Handing off to new conversation", extra=_ctx(run))
        await self._send(run, build_summary_injection_message(summary), _HANDOFF_OPTIONS)

    async def _complete_injection(self, run: WorkflowRunState) -> None:
        await self._advance(run)

    async def _advance(self, run: WorkflowRunState) -> None:
        next_index = run.current_step_index + 1
        finished = run.is_last_step
        run = transition(
            current=run,
            to=RunPhase.STEP,
            current_step_index=next_index,
            summary_text=None,
        )
        if finished:
            run = run.ended()
            self._store.set(run)
            logger.info("Workflow run completed", extra=_ctx(run))
            return

        self._store.set(run)
        await self.start_step()

    async def _send(self, run: WorkflowRunState, text: str, options: SendOptions) -> None:
        try:
            await self._conversations.send_message(
                run.space_id, run.conversation_id, text, options
            )
        except Exception:
            logger.exception("Failed to send workflow message", extra=_ctx(run))
            latest = self._store.get()
            if latest is not None and self._is_current(run):
                latest = latest.with_step(
                    latest.current_step_index, status=StepStatus.ERROR, ended_at=utc_now_iso()
                )
                self._store.set(latest.ended(failure=RunFailure.SEND_ERROR))
            return

        latest = self._store.get()
        if self._on_message_sent is not None and latest is not None and self._is_current(run):
            self._on_message_sent(latest)
