"""Unit tests for the directory-backed resource catalog."""

from __future__ import annotations

from pathlib import Path

from agent_workflow_runner.orchestrator.workflow.catalog import DirectoryResourceCatalog
from agent_workflow_runner.orchestrator.workflow.collaborators import ResourceRef


def _touch(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("---\n---\n", encoding="utf-8")


def test_lists_space_and_plugin_resources(spaces_root: Path) -> None:
    claude = spaces_root / "space-1" / ".claude"
    _touch(claude / "skills" / "deploy" / "SKILL.md")
    (claude / "skills" / "half-written").mkdir()
    _touch(claude / "agents" / "reviewer.md")
    _touch(claude / "agents" / "notes.txt")
    _touch(claude / "commands" / "lint.md")
    _touch(claude / "plugins" / "ops" / "skills" / "rollback" / "SKILL.md")
    _touch(claude / "plugins" / "ops" / "commands" / "lint.md")

    catalog = DirectoryResourceCatalog(spaces_root)

    assert catalog.list_skills("space-1", "en").data == [
        ResourceRef(name="deploy"),
        ResourceRef(name="rollback", namespace="ops"),
    ]
    assert catalog.list_agents("space-1", "en").data == [ResourceRef(name="reviewer")]
    assert catalog.list_commands("space-1", "en").data == [
        ResourceRef(name="lint"),
        ResourceRef(name="lint", namespace="ops"),
    ]


def test_space_without_resources_lists_nothing(spaces_root: Path) -> None:
    result = DirectoryResourceCatalog(spaces_root).list_agents("space-1", "en")

    assert result.success
    assert result.data == []


def test_unknown_space_fails(spaces_root: Path) -> None:
    result = DirectoryResourceCatalog(spaces_root).list_skills("missing", "en")

    assert not result.success
    assert result.error == "Space not found"
