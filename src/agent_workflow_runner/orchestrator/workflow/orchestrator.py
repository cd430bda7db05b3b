"""Workflow orchestrator: the surface callers (CLI, UI) use to run workflows.

One orchestrator owns at most one active run. `run_workflow` and completion
events are serialized by a single lock; a completion event that arrives while
a transition holds the lock is dropped. `stop_run` never waits for the lock.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Any

from agent_workflow_runner.orchestrator.config import WorkflowRunnerSettings

from .catalog import DirectoryResourceCatalog
from .collaborators import (
    ConversationAdapter,
    ConversationCreateError,
    ResourceCatalog,
    WorkflowStore,
)
from .events import AgentTurnCompleted
from .models import WorkflowDefinition, WorkflowMeta
from .resources import MissingResourcesError, collect_available, ensure_available
from .run_state import (
    RunFailure,
    RunListener,
    RunPhase,
    RunStateStore,
    StepStatus,
    WorkflowRunState,
    utc_now_iso,
)
from .state_machine import PhaseTransitionEngine
from .store import JsonWorkflowStore

logger = logging.getLogger(__name__)


class WorkflowOrchestrator:
    """Run workflows from a store against a conversational agent backend.

    Attributes mirror what a UI displays: the loaded workflow list, the
    selected workflow, the last user-facing `error`, and (via `active_run`)
    the current run snapshot.
    """

    def __init__(
        self,
        *,
        workflows: WorkflowStore,
        catalog: ResourceCatalog,
        conversations: ConversationAdapter,
        locale: str = "en",
        run_timeout_seconds: float = 0.0,
    ) -> None:
        self._workflow_store = workflows
        self._catalog = catalog
        self._conversations = conversations
        self._locale = locale
        self._run_timeout_seconds = run_timeout_seconds

        self._runs = RunStateStore(conversations)
        self._engine = PhaseTransitionEngine(
            self._runs, conversations, on_message_sent=self._arm_deadline
        )
        self._lock = asyncio.Lock()
        self._deadline: asyncio.Task[None] | None = None

        self.workflows: list[WorkflowMeta] = []
        self.loaded_space_id: str | None = None
        self.active_workflow: WorkflowDefinition | None = None
        self.is_loading = False
        self.error: str | None = None

    @classmethod
    def from_settings(
        cls, settings: WorkflowRunnerSettings, *, conversations: ConversationAdapter
    ) -> WorkflowOrchestrator:
        catalog = DirectoryResourceCatalog(settings.spaces_root)
        return cls(
            workflows=JsonWorkflowStore(
                settings.spaces_root, catalog=catalog, locale=settings.locale
            ),
            catalog=catalog,
            conversations=conversations,
            locale=settings.locale,
            run_timeout_seconds=settings.run_timeout_seconds,
        )

    @property
    def active_run(self) -> WorkflowRunState | None:
        return self._runs.get()

    def subscribe(self, listener: RunListener) -> Callable[[], None]:
        return self._runs.subscribe(listener)

    # Workflow library

    def load_workflows(self, space_id: str) -> list[WorkflowMeta]:
        self.is_loading = True
        self.error = None
        try:
            result = self._workflow_store.list(space_id)
            if result.success and result.data is not None:
                self.workflows = result.data
                self.loaded_space_id = space_id
            else:
                self.error = result.error or "Failed to load workflows"
        finally:
            self.is_loading = False
        return self.workflows

    def load_workflow(self, space_id: str, workflow_id: str) -> WorkflowDefinition | None:
        result = self._workflow_store.get(space_id, workflow_id)
        if result.success and result.data is not None:
            self.active_workflow = result.data
            return result.data
        self.error = result.error or "Failed to load workflow"
        return None

    def create_workflow(self, space_id: str, data: dict[str, Any]) -> WorkflowDefinition | None:
        result = self._workflow_store.create(space_id, data)
        if result.success and result.data is not None:
            self.workflows = [result.data.to_meta(), *self.workflows]
            return result.data
        self.error = result.error or "Failed to create workflow"
        return None

    def update_workflow(
        self, space_id: str, workflow_id: str, patch: dict[str, Any]
    ) -> WorkflowDefinition | None:
        """Apply `patch` (on-disk camelCase keys) to a stored workflow."""

        result = self._workflow_store.update(space_id, workflow_id, patch)
        if result.success and result.data is not None:
            updated = result.data
            self.workflows = [
                updated.to_meta() if meta.id == workflow_id else meta for meta in self.workflows
            ]
            if self.active_workflow is not None and self.active_workflow.id == workflow_id:
                self.active_workflow = updated
            return updated
        self.error = result.error or "Failed to update workflow"
        return None

    def delete_workflow(self, space_id: str, workflow_id: str) -> bool:
        result = self._workflow_store.delete(space_id, workflow_id)
        if result.success:
            self.workflows = [meta for meta in self.workflows if meta.id != workflow_id]
            if self.active_workflow is not None and self.active_workflow.id == workflow_id:
                self.active_workflow = None
            return True
        self.error = result.error or "Failed to delete workflow"
        return False

    # Validation

    def validate(self, space_id: str, workflow: WorkflowDefinition) -> None:
        """Raise MissingResourcesError if any step names an unavailable resource."""

        ensure_available(workflow.steps, collect_available(self._catalog, space_id, self._locale))

    # Runs

    async def run_workflow(self, space_id: str, workflow_id: str) -> None:
        async with self._lock:
            active = self._runs.get()
            if active is not None and active.is_running:
                logger.info(
                    "A workflow run is already active; ignoring run request",
                    extra={"run_id": active.run_id, "workflow_id": workflow_id},
                )
                return

            self.error = None
            workflow = self.load_workflow(space_id, workflow_id)
            if workflow is None:
                return

            try:
                self.validate(space_id, workflow)
            except MissingResourcesError as e:
                logger.warning(str(e), extra={"space_id": space_id, "workflow_id": workflow_id})
                self.error = str(e)
                return

            try:
                conversation = await self._conversations.create_conversation(
                    space_id, workflow.name
                )
            except ConversationCreateError:
                logger.exception(
                    "Failed to create workflow conversation",
                    extra={"space_id": space_id, "workflow_id": workflow_id},
                )
                self.error = "Failed to create workflow conversation"
                return

            self._cancel_deadline()
            run = WorkflowRunState.start(
                run_id=uuid.uuid4().hex,
                workflow=workflow,
                space_id=space_id,
                conversation_id=conversation.id,
            )
            self._runs.set(run)
            logger.info(
                "Workflow run started",
                extra={
                    "run_id": run.run_id,
                    "workflow_id": workflow.id,
                    "space_id": space_id,
                    "conversation_id": conversation.id,
                    "steps": len(workflow.steps),
                },
            )

            self.update_workflow(
                space_id,
                workflow_id,
                {"lastRunAt": run.started_at, "lastConversationId": conversation.id},
            )

            await self._engine.start_step()
            self._surface_build_error()

    async def stop_run(self) -> None:
        run = self._runs.get()
        if run is None or not run.is_running:
            return
        self._cancel_deadline()
        self._runs.set(run.ended())
        logger.info(
            "Workflow run stopped",
            extra={"run_id": run.run_id, "conversation_id": run.conversation_id},
        )
        await self._conversations.stop_generation(run.conversation_id)

    async def handle_agent_complete(self, event: AgentTurnCompleted) -> None:
        if self._lock.locked():
            logger.debug(
                "Transition in progress; ignoring completion event",
                extra={"conversation_id": event.conversation_id},
            )
            return

        async with self._lock:
            if not self._engine.accepts(event):
                logger.debug(
                    "Ignoring completion event for inactive or foreign conversation",
                    extra={"space_id": event.space_id, "conversation_id": event.conversation_id},
                )
                return
            self._cancel_deadline()
            await self._engine.on_agent_complete(event)
            self._surface_build_error()

    def _surface_build_error(self) -> None:
        run = self._runs.get()
        if run is not None and run.failure is RunFailure.BUILD_ERROR:
            self.error = f"Workflow step {run.current_step_index + 1} has nothing to send"

    async def aclose(self) -> None:
        self._cancel_deadline()

    # Turn deadline

    def _arm_deadline(self, run: WorkflowRunState) -> None:
        if self._run_timeout_seconds <= 0:
            return
        self._cancel_deadline()
        self._deadline = asyncio.get_running_loop().create_task(
            self._expire_after(
                self._run_timeout_seconds,
                run_id=run.run_id,
                conversation_id=run.conversation_id,
                phase=run.phase,
                step_index=run.current_step_index,
            ),
            name=f"workflow-deadline-{run.run_id}",
        )

    def _cancel_deadline(self) -> None:
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None

    async def _expire_after(
        self,
        timeout: float,
        *,
        run_id: str,
        conversation_id: str,
        phase: RunPhase,
        step_index: int,
    ) -> None:
        await asyncio.sleep(timeout)
        async with self._lock:
            run = self._runs.get()
            if (
                run is None
                or not run.is_running
                or run.run_id != run_id
                or run.conversation_id != conversation_id
                or run.phase is not phase
                or run.current_step_index != step_index
            ):
                return
            self._deadline = None
            logger.warning(
                "Agent turn timed out; ending run",
                extra={
                    "run_id": run_id,
                    "conversation_id": conversation_id,
                    "phase": phase.value,
                    "step_index": step_index,
                    "timeout_seconds": timeout,
                },
            )
            run = run.with_step(step_index, status=StepStatus.ERROR, ended_at=utc_now_iso())
            self._runs.set(run.ended(failure=RunFailure.TIMEOUT))
        await self._conversations.stop_generation(conversation_id)
