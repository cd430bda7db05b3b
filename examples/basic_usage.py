#!/usr/bin/env python3
"""Programmatic workflow run example.

This demonstrates using the runner components directly:

* load settings from `.env`
* store a two-step workflow in a space (summarizing between the steps)
* run it against the configured LLM and watch the run snapshots

The space directory is created under `WORKFLOW_SPACES_ROOT` if missing.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from agent_workflow_runner.llm import LLMFactory
from agent_workflow_runner.orchestrator.config import WorkflowRunnerSettings
from agent_workflow_runner.orchestrator.logging import configure_logging
from agent_workflow_runner.orchestrator.workflow import WorkflowOrchestrator, WorkflowRunState


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a small workflow (programmatic example).")
    parser.add_argument("--space", default="demo", help="Space id to store the workflow in")
    parser.add_argument("--topic", required=True, help="What the workflow should research")
    return parser.parse_args(argv)


def _print_snapshot(run: WorkflowRunState | None) -> None:
    if run is None:
        return
    step = run.current_step_index + 1
    state = "running" if run.is_running else "ended"
    print(f"[{state}] step {step}/{len(run.steps)} phase={run.phase.value}")


async def _run(settings: WorkflowRunnerSettings, space_id: str, topic: str) -> int:
    (settings.spaces_root / space_id).mkdir(parents=True, exist_ok=True)

    adapter = LLMFactory.conversation_backend(settings.llm)
    orchestrator = WorkflowOrchestrator.from_settings(settings, conversations=adapter)
    adapter.on_turn_complete = orchestrator.handle_agent_complete
    orchestrator.subscribe(_print_snapshot)

    workflow = orchestrator.create_workflow(
        space_id,
        {
            "name": f"Brief: {topic}",
            "steps": [
                {
                    "type": "message",
                    "input": f"List the key facts about {topic}.",
                    "summarizeAfter": True,
                },
                {"type": "message", "input": "Write a three-sentence brief from those facts."},
            ],
        },
    )
    if workflow is None:
        print(orchestrator.error)
        return 1

    await orchestrator.run_workflow(space_id, workflow.id)
    await adapter.wait_idle()
    await orchestrator.aclose()

    run = orchestrator.active_run
    if run is None or run.failure is not None:
        print(orchestrator.error or f"Run failed: {run.failure.value if run else 'not started'}")
        return 1

    print(run.steps[-1].output or "")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowRunnerSettings()
    configure_logging(settings.log_level)

    return asyncio.run(_run(settings, args.space, args.topic))


if __name__ == "__main__":
    raise SystemExit(main())
