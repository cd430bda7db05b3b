"""Literal messages sent to the agent backend by a workflow run."""

from __future__ import annotations

from .models import StepKind, WorkflowStep

SUMMARY_PROMPT = " ".join(
    [
        "Summarize the conversation so far for a clean handoff to the next step.",
        "Return concise bullet points covering goals, decisions, constraints, key outputs, "
        "and open questions.",
        "Use the same language as the conversation. Do not add extra commentary.",
    ]
)


def _suffix(value: str | None) -> str:
    return f" {value}" if value else ""


def build_step_message(step: WorkflowStep) -> str:
    """Render a step as the text a user would type.

    An empty result means the step cannot run (e.g. a skill without a name).
    """

    if step.kind is StepKind.MESSAGE:
        return step.input or ""

    name = (step.name or "").strip()
    if not name:
        return ""
    if step.kind is StepKind.COMMAND:
        return f"/{name}{_suffix(step.input)}".strip()
    if step.kind is StepKind.SKILL:
        return f"/{name}{_suffix(step.args)}{_suffix(step.input)}".strip()
    return f"@{name}{_suffix(step.input)}".strip()


def build_summary_injection_message(summary: str) -> str:
    return f"Context summary from previous steps:\n\n{summary.strip()}\n\nAcknowledge briefly and wait."


def handoff_conversation_title(workflow_name: str, next_step_index: int) -> str:
    """Title for the conversation that will run step `next_step_index` (0-based)."""

    return f"{workflow_name} (Step {next_step_index + 1})"
