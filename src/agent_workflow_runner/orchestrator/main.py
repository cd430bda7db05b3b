"""CLI entrypoint for the workflow runner.

Library commands (list/show/validate/create) only touch the local spaces
directory. `run` drives a workflow end-to-end against the configured LLM.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from agent_workflow_runner import __version__
from agent_workflow_runner.llm.factory import LLMFactory
from agent_workflow_runner.orchestrator.config import WorkflowRunnerSettings
from agent_workflow_runner.orchestrator.logging import configure_logging
from agent_workflow_runner.orchestrator.workflow.catalog import DirectoryResourceCatalog
from agent_workflow_runner.orchestrator.workflow.messages import build_step_message
from agent_workflow_runner.orchestrator.workflow.orchestrator import WorkflowOrchestrator
from agent_workflow_runner.orchestrator.workflow.resources import (
    MissingResourcesError,
    collect_available,
    ensure_available,
)
from agent_workflow_runner.orchestrator.workflow.run_state import StepStatus
from agent_workflow_runner.orchestrator.workflow.store import JsonWorkflowStore

logger = logging.getLogger(__name__)


def _add_space_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--space", required=True, help="Space id (directory under the spaces root)")


def _add_workflow_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--workflow", required=True, help="Workflow id")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-runner",
        description="Run skill/agent/command workflows against a conversational agent",
    )
    parser.add_argument(
        "--version", action="version", version=f"agent-workflow-runner {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_cmd = subparsers.add_parser("list", help="List the workflows of a space")
    _add_space_arg(list_cmd)

    show = subparsers.add_parser("show", help="Print the message each step will send")
    _add_space_arg(show)
    _add_workflow_arg(show)

    validate = subparsers.add_parser(
        "validate", help="Check that every step's skill/agent/command is available"
    )
    _add_space_arg(validate)
    _add_workflow_arg(validate)

    create = subparsers.add_parser("create", help="Create a workflow from a JSON file")
    _add_space_arg(create)
    create.add_argument(
        "--file",
        type=Path,
        required=True,
        help="JSON file with 'name', 'steps' and optional 'description'/'settings'",
    )

    run = subparsers.add_parser("run", help="Run a workflow until it finishes")
    _add_space_arg(run)
    _add_workflow_arg(run)
    run.add_argument(
        "--json", action="store_true", help="Print the final run snapshot as JSON"
    )

    return parser


async def _run_workflow(
    settings: WorkflowRunnerSettings, space_id: str, workflow_id: str, *, as_json: bool = False
) -> int:
    adapter = LLMFactory.conversation_backend(settings.llm)
    orchestrator = WorkflowOrchestrator.from_settings(settings, conversations=adapter)
    adapter.on_turn_complete = orchestrator.handle_agent_complete

    try:
        await orchestrator.run_workflow(space_id, workflow_id)
        if orchestrator.active_run is None:
            print(orchestrator.error or "Workflow run did not start", file=sys.stderr)
            return 1
        await adapter.wait_idle()
    finally:
        await orchestrator.aclose()

    run = orchestrator.active_run
    if run is None:
        return 1

    if orchestrator.error:
        print(orchestrator.error, file=sys.stderr)
    if as_json:
        print(json.dumps(run.to_json(), indent=2, ensure_ascii=False))
    else:
        for index, (step, state) in enumerate(zip(run.workflow.steps, run.steps), start=1):
            print(f"{index}. [{step.kind.value}] {state.status.value}")
            if state.output:
                print(f"   {state.output.splitlines()[0]}")
    if run.is_running:
        print("Run did not finish (no completion event)", file=sys.stderr)
        return 1
    if run.failure is not None:
        print(f"Run failed: {run.failure.value}", file=sys.stderr)
        return 1
    return 0 if all(s.status is StepStatus.COMPLETED for s in run.steps) else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowRunnerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    catalog = DirectoryResourceCatalog(settings.spaces_root)
    store = JsonWorkflowStore(settings.spaces_root, catalog=catalog, locale=settings.locale)

    try:
        if args.command == "list":
            listed = store.list(args.space)
            if not listed.success or listed.data is None:
                print(listed.error, file=sys.stderr)
                return 1
            for meta in listed.data:
                print(f"{meta.id}\t{meta.name}\t{meta.last_run_at or '-'}")
            return 0

        if args.command in {"show", "validate"}:
            loaded = store.get(args.space, args.workflow)
            if not loaded.success or loaded.data is None:
                print(loaded.error, file=sys.stderr)
                return 1
            workflow = loaded.data

            if args.command == "show":
                for index, step in enumerate(workflow.steps, start=1):
                    marker = " *" if step.summarize_after else ""
                    print(f"{index}. [{step.kind.value}] {build_step_message(step)}{marker}")
                return 0

            try:
                ensure_available(
                    workflow.steps, collect_available(catalog, args.space, settings.locale)
                )
            except MissingResourcesError as e:
                print(str(e), file=sys.stderr)
                return 1
            print(f"All {len(workflow.steps)} step(s) available")
            return 0

        if args.command == "create":
            data = json.loads(args.file.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                print("Workflow file must contain a JSON object", file=sys.stderr)
                return 1
            created = store.create(args.space, data)
            if not created.success or created.data is None:
                print(created.error, file=sys.stderr)
                return 1
            print(created.data.id)
            return 0

        if args.command == "run":
            return asyncio.run(
                _run_workflow(settings, args.space, args.workflow, as_json=args.json)
            )

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
