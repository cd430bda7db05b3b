"""Workflow run engine.

This package provides first-class types for:
- Workflow definitions and their steps
- Resource availability checks run before any side effect
- The literal messages a run sends to the agent backend
- The active run record and the phase state machine driving it
- The orchestrator exposing run/stop/complete to callers

Runs advance only on "agent turn completed" events, so execution spans many
event-loop turns and, after a summarize-and-handoff, several conversations.
"""

from .events import AgentTurnCompleted
from .models import StepKind, WorkflowDefinition, WorkflowStep
from .orchestrator import WorkflowOrchestrator
from .run_state import RunFailure, RunPhase, StepStatus, WorkflowRunState

__all__ = [
    "AgentTurnCompleted",
    "RunFailure",
    "RunPhase",
    "StepKind",
    "StepStatus",
    "WorkflowDefinition",
    "WorkflowOrchestrator",
    "WorkflowRunState",
    "WorkflowStep",
]
