"""JSON-file backed workflow definitions, one directory per space.

Layout::

    <spaces_root>/<space_id>/.halo/workflows/
        index.json          {"version": 1, "updatedAt": ..., "workflows": [WorkflowMeta...]}
        <workflow_id>.json  WorkflowDefinition

The index is a cache: when it is missing, unreadable or from another version
it is rebuilt from the workflow files. Saved skill and agent steps must name
resources of the space itself when the store is given a catalog.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .collaborators import ResourceCatalog, StoreResult
from .models import WorkflowDefinition, WorkflowMeta, WorkflowStep
from .resources import collect_available, find_non_space_steps
from .run_state import utc_now_iso

logger = logging.getLogger(__name__)

INDEX_VERSION = 1
INDEX_FILE = "index.json"


class WorkflowStoreError(Exception):
    """A workflow operation failed; the message is safe to show to users."""


def _normalize_steps(raw_steps: list[Any]) -> list[dict[str, Any]]:
    steps: list[dict[str, Any]] = []
    for raw in raw_steps:
        if not isinstance(raw, dict):
            raise WorkflowStoreError("Invalid workflow step")
        step = dict(raw)
        if not step.get("id"):
            step["id"] = uuid.uuid4().hex
        steps.append(step)
    return steps


@dataclass
class JsonWorkflowStore:
    """Workflow store over `spaces_root`.

    With a `catalog`, saving steps that name skills or agents the space does
    not provide is rejected.
    """

    spaces_root: Path
    catalog: ResourceCatalog | None = None
    locale: str = "en"

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _check_space_resources(self, space_id: str, steps: list[WorkflowStep]) -> None:
        if self.catalog is None:
            return
        missing = find_non_space_steps(
            steps, collect_available(self.catalog, space_id, self.locale)
        )
        if missing:
            raise WorkflowStoreError(
                f"Workflow contains non-space resources: {', '.join(missing)}"
            )

    def _workflows_dir(self, space_id: str) -> Path:
        space_dir = self.spaces_root / space_id
        if not space_id.strip() or not space_dir.is_dir():
            raise WorkflowStoreError("Space not found")
        workflows_dir = space_dir / ".halo" / "workflows"
        workflows_dir.mkdir(parents=True, exist_ok=True)
        return workflows_dir

    def _read_workflow(self, path: Path) -> WorkflowDefinition | None:
        try:
            return WorkflowDefinition.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError):
            logger.warning("Unreadable workflow file; skipping", extra={"path": str(path)})
            return None

    def _write_json(self, path: Path, payload: object) -> None:
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")

    def _read_index_unlocked(self, workflows_dir: Path) -> list[WorkflowMeta] | None:
        path = workflows_dir / INDEX_FILE
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        if not isinstance(raw, dict) or raw.get("version") != INDEX_VERSION:
            return None
        items = raw.get("workflows")
        if not isinstance(items, list):
            return None
        try:
            return [WorkflowMeta.model_validate(item) for item in items]
        except ValidationError:
            return None

    def _write_index_unlocked(self, workflows_dir: Path, metas: list[WorkflowMeta]) -> None:
        self._write_json(
            workflows_dir / INDEX_FILE,
            {
                "version": INDEX_VERSION,
                "updatedAt": utc_now_iso(),
                "workflows": [meta.to_json() for meta in metas],
            },
        )

    def _rebuild_index_unlocked(self, workflows_dir: Path, space_id: str) -> list[WorkflowMeta]:
        metas: list[WorkflowMeta] = []
        for path in sorted(workflows_dir.glob("*.json")):
            if path.name == INDEX_FILE:
                continue
            workflow = self._read_workflow(path)
            if workflow is not None and workflow.space_id == space_id:
                metas.append(workflow.to_meta())
        return metas

    def _index_unlocked(self, workflows_dir: Path, space_id: str) -> list[WorkflowMeta]:
        metas = self._read_index_unlocked(workflows_dir)
        if metas is None:
            metas = self._rebuild_index_unlocked(workflows_dir, space_id)
            self._write_index_unlocked(workflows_dir, metas)
        return metas

    def list(self, space_id: str) -> StoreResult[list[WorkflowMeta]]:
        with self._lock:
            try:
                workflows_dir = self._workflows_dir(space_id)
            except WorkflowStoreError as e:
                return StoreResult.fail(str(e))
            return StoreResult.ok(self._index_unlocked(workflows_dir, space_id))

    def get(self, space_id: str, workflow_id: str) -> StoreResult[WorkflowDefinition]:
        with self._lock:
            try:
                workflows_dir = self._workflows_dir(space_id)
            except WorkflowStoreError as e:
                return StoreResult.fail(str(e))
            path = workflows_dir / f"{workflow_id}.json"
            workflow = self._read_workflow(path) if path.exists() else None
            if workflow is None:
                return StoreResult.fail(f"Workflow not found: {workflow_id}")
            return StoreResult.ok(workflow)

    def create(self, space_id: str, data: dict[str, Any]) -> StoreResult[WorkflowDefinition]:
        with self._lock:
            try:
                workflows_dir = self._workflows_dir(space_id)
                if not data.get("name") or not isinstance(data.get("steps"), list):
                    raise WorkflowStoreError("Invalid workflow input")
                now = utc_now_iso()
                workflow = WorkflowDefinition.model_validate(
                    {
                        **data,
                        "id": uuid.uuid4().hex,
                        "spaceId": space_id,
                        "steps": _normalize_steps(data["steps"]),
                        "createdAt": now,
                        "updatedAt": now,
                    }
                )
                self._check_space_resources(space_id, workflow.steps)
            except WorkflowStoreError as e:
                return StoreResult.fail(str(e))
            except ValidationError as e:
                return StoreResult.fail(f"Invalid workflow input: {e.error_count()} error(s)")

            # Load the index before writing the file; a rebuild would otherwise list it too.
            metas = self._index_unlocked(workflows_dir, space_id)
            self._write_json(workflows_dir / f"{workflow.id}.json", workflow.to_json())
            metas.append(workflow.to_meta())
            self._write_index_unlocked(workflows_dir, metas)
            logger.info(
                "Workflow created",
                extra={"space_id": space_id, "workflow_id": workflow.id, "steps": len(workflow.steps)},
            )
            return StoreResult.ok(workflow)

    def update(
        self, space_id: str, workflow_id: str, patch: dict[str, Any]
    ) -> StoreResult[WorkflowDefinition]:
        with self._lock:
            try:
                workflows_dir = self._workflows_dir(space_id)
            except WorkflowStoreError as e:
                return StoreResult.fail(str(e))
            path = workflows_dir / f"{workflow_id}.json"
            existing = self._read_workflow(path) if path.exists() else None
            if existing is None:
                return StoreResult.fail(f"Workflow not found: {workflow_id}")

            merged: dict[str, Any] = {**existing.to_json(), **patch}
            try:
                if "steps" in patch:
                    if not isinstance(patch["steps"], list):
                        raise WorkflowStoreError("Invalid workflow steps")
                    merged["steps"] = _normalize_steps(patch["steps"])
                merged.update(id=existing.id, spaceId=existing.space_id, updatedAt=utc_now_iso())
                updated = WorkflowDefinition.model_validate(merged)
                if "steps" in patch:
                    self._check_space_resources(space_id, updated.steps)
            except WorkflowStoreError as e:
                return StoreResult.fail(str(e))
            except ValidationError as e:
                return StoreResult.fail(f"Invalid workflow update: {e.error_count()} error(s)")

            self._write_json(path, updated.to_json())
            metas = [
                updated.to_meta() if meta.id == workflow_id else meta
                for meta in self._index_unlocked(workflows_dir, space_id)
            ]
            self._write_index_unlocked(workflows_dir, metas)
            return StoreResult.ok(updated)

    def delete(self, space_id: str, workflow_id: str) -> StoreResult[bool]:
        with self._lock:
            try:
                workflows_dir = self._workflows_dir(space_id)
            except WorkflowStoreError as e:
                return StoreResult.fail(str(e))
            path = workflows_dir / f"{workflow_id}.json"
            if not path.exists():
                return StoreResult.fail(f"Workflow not found: {workflow_id}")
            path.unlink()
            metas = [
                meta for meta in self._index_unlocked(workflows_dir, space_id) if meta.id != workflow_id
            ]
            self._write_index_unlocked(workflows_dir, metas)
            logger.info("Workflow deleted", extra={"space_id": space_id, "workflow_id": workflow_id})
            return StoreResult.ok(True)
