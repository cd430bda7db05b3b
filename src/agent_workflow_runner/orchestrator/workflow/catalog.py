"""Resource catalog backed by a space's `.claude` directory.

    <space>/.claude/skills/<name>/SKILL.md
    <space>/.claude/agents/<name>.md
    <space>/.claude/commands/<name>.md
    <space>/.claude/plugins/<namespace>/{skills,agents,commands}/...

Plugin resources are listed with their namespace; everything else has none.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .collaborators import ResourceRef, StoreResult

logger = logging.getLogger(__name__)


def _scan_skills(directory: Path, namespace: str | None) -> list[ResourceRef]:
    if not directory.is_dir():
        return []
    return [
        ResourceRef(name=entry.name, namespace=namespace)
        for entry in directory.iterdir()
        if entry.is_dir() and (entry / "SKILL.md").is_file()
    ]


def _scan_markdown(directory: Path, namespace: str | None) -> list[ResourceRef]:
    if not directory.is_dir():
        return []
    return [
        ResourceRef(name=entry.stem, namespace=namespace)
        for entry in directory.iterdir()
        if entry.is_file() and entry.suffix == ".md"
    ]


Scanner = Callable[[Path, str | None], list[ResourceRef]]


@dataclass(frozen=True, slots=True)
class DirectoryResourceCatalog:
    spaces_root: Path

    def _list(self, space_id: str, subdir: str, scan: Scanner) -> StoreResult[list[ResourceRef]]:
        space_dir = self.spaces_root / space_id
        if not space_id.strip() or not space_dir.is_dir():
            return StoreResult.fail("Space not found")

        root = space_dir / ".claude"
        refs = scan(root / subdir, None)

        plugins = root / "plugins"
        if plugins.is_dir():
            for plugin in plugins.iterdir():
                if plugin.is_dir():
                    refs.extend(scan(plugin / subdir, plugin.name))

        refs.sort(key=lambda ref: (ref.namespace or "", ref.name))
        logger.debug(
            "Listed resources", extra={"space_id": space_id, "kind": subdir, "count": len(refs)}
        )
        return StoreResult.ok(refs)

    def list_skills(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]:
        return self._list(space_id, "skills", _scan_skills)

    def list_agents(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]:
        return self._list(space_id, "agents", _scan_markdown)

    def list_commands(self, space_id: str, locale: str) -> StoreResult[list[ResourceRef]]:
        return self._list(space_id, "commands", _scan_markdown)
