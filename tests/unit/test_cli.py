"""Unit tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from agent_workflow_runner.orchestrator import main as cli


@pytest.fixture(autouse=True)
def _cli_env(monkeypatch: pytest.MonkeyPatch, spaces_root: Path) -> None:
    monkeypatch.chdir(spaces_root.parent)
    monkeypatch.setenv("WORKFLOW_SPACES_ROOT", str(spaces_root))
    monkeypatch.setenv("WORKFLOW_RUN_TIMEOUT_SECONDS", "0")
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


def _create(tmp_path: Path, capsys: pytest.CaptureFixture[str], definition: dict) -> str:
    source = tmp_path / "workflow.json"
    source.write_text(json.dumps(definition), encoding="utf-8")
    assert cli.main(["create", "--space", "space-1", "--file", str(source)]) == 0
    return capsys.readouterr().out.strip()


RELEASE = {
    "name": "Release",
    "steps": [
        {"type": "command", "name": "lint", "input": "--fix", "summarizeAfter": True},
        {"type": "agent", "name": "reviewer"},
    ],
}


@pytest.fixture
def claude_dir(spaces_root: Path) -> Path:
    """`space-1` providing the `reviewer` agent."""

    claude = spaces_root / "space-1" / ".claude"
    (claude / "agents").mkdir(parents=True)
    (claude / "agents" / "reviewer.md").write_text("review", encoding="utf-8")
    return claude


def test_create_then_list_and_show(
    tmp_path: Path, claude_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    workflow_id = _create(tmp_path, capsys, RELEASE)

    assert cli.main(["list", "--space", "space-1"]) == 0
    assert capsys.readouterr().out.splitlines() == [f"{workflow_id}\tRelease\t-"]

    assert cli.main(["show", "--space", "space-1", "--workflow", workflow_id]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "1. [command] /lint --fix *",
        "2. [agent] @reviewer",
    ]


def test_create_rejects_agents_outside_the_space(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = tmp_path / "workflow.json"
    source.write_text(json.dumps(RELEASE), encoding="utf-8")

    assert cli.main(["create", "--space", "space-1", "--file", str(source)]) == 1
    assert (
        "Workflow contains non-space resources: Step 2: agent reviewer"
        in capsys.readouterr().err
    )


def test_validate_reports_missing_resources(
    tmp_path: Path, claude_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    workflow_id = _create(tmp_path, capsys, RELEASE)
    (claude_dir / "agents" / "reviewer.md").unlink()

    assert cli.main(["validate", "--space", "space-1", "--workflow", workflow_id]) == 1
    assert "Step 1: command lint, Step 2: agent reviewer" in capsys.readouterr().err

    (claude_dir / "commands").mkdir()
    (claude_dir / "commands" / "lint.md").write_text("lint", encoding="utf-8")
    (claude_dir / "agents" / "reviewer.md").write_text("review", encoding="utf-8")

    assert cli.main(["validate", "--space", "space-1", "--workflow", workflow_id]) == 0
    assert capsys.readouterr().out.strip() == "All 2 step(s) available"


def test_unknown_space_and_workflow(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["list", "--space", "ghost"]) == 1
    assert "Space not found" in capsys.readouterr().err

    assert cli.main(["show", "--space", "space-1", "--workflow", "nope"]) == 1
    assert "Workflow not found: nope" in capsys.readouterr().err


def test_create_rejects_non_object(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "workflow.json"
    source.write_text("[]", encoding="utf-8")

    assert cli.main(["create", "--space", "space-1", "--file", str(source)]) == 1
    assert "JSON object" in capsys.readouterr().err


def test_invalid_configuration_exits_with_2(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("WORKFLOW_RUN_TIMEOUT_SECONDS", "-5")

    assert cli.main(["list", "--space", "space-1"]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_run_drives_workflow_to_completion(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], make_provider
) -> None:
    workflow_id = _create(
        tmp_path,
        capsys,
        {
            "name": "Chat",
            "steps": [{"type": "message", "input": "hello"}, {"type": "message", "input": "bye"}],
        },
    )
    provider = make_provider(["hi!", "see you"])

    with patch.object(cli.LLMFactory, "create", return_value=provider):
        code = cli.main(["run", "--space", "space-1", "--workflow", workflow_id])

    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out == ["1. [message] completed", "   hi!", "2. [message] completed", "   see you"]

    assert cli.main(["list", "--space", "space-1"]) == 0
    assert capsys.readouterr().out.split("\t")[2].strip() != "-"


def test_run_prints_snapshot_as_json(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], make_provider
) -> None:
    workflow_id = _create(
        tmp_path, capsys, {"name": "Chat", "steps": [{"type": "message", "input": "hello"}]}
    )
    provider = make_provider(["hi!"])

    with patch.object(cli.LLMFactory, "create", return_value=provider):
        code = cli.main(["run", "--space", "space-1", "--workflow", workflow_id, "--json"])

    snapshot = json.loads(capsys.readouterr().out)
    assert code == 0
    assert snapshot["workflowId"] == workflow_id
    assert snapshot["isRunning"] is False
    assert snapshot["steps"][0]["status"] == "completed"
    assert snapshot["steps"][0]["output"] == "hi!"
    assert "failure" not in snapshot
