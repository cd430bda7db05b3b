"""Step resource availability checks.

Runs before a workflow run commits any side effect: every skill, agent and
command step must name a resource the space's catalogs currently list.
Saving a workflow applies the stricter space check (`find_non_space_steps`).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence

from .collaborators import ResourceCatalog, ResourceRef, StoreResult
from .models import RESOURCE_KINDS, StepKind, WorkflowStep

logger = logging.getLogger(__name__)

# Step kinds checked when a workflow is saved.
SPACE_CHECKED_KINDS: frozenset[StepKind] = frozenset({StepKind.SKILL, StepKind.AGENT})


def parse_resource_name(step_name: str) -> tuple[str | None, str] | None:
    """Split `namespace:name` into `(namespace, name)`; `None` if unusable.

    Anything after a second ':' is ignored.
    """

    trimmed = step_name.strip()
    if not trimmed:
        return None
    if ":" not in trimmed:
        return None, trimmed
    namespace, name = trimmed.split(":")[:2]
    if not namespace or not name:
        return None
    return namespace, name


def is_available(step_name: str, refs: Iterable[ResourceRef]) -> bool:
    """Whether `step_name` (optionally `namespace:name`) is present in `refs`.

    An unqualified name prefers a resource without namespace but falls back to
    any resource with that name, for catalogs that don't track namespaces.
    A qualified name must match both parts exactly.
    """

    parsed = parse_resource_name(step_name)
    if parsed is None:
        return False

    namespace, name = parsed
    refs = list(refs)
    if namespace is None:
        return any(ref.name == name and not ref.namespace for ref in refs) or any(
            ref.name == name for ref in refs
        )
    return any(ref.name == name and ref.namespace == namespace for ref in refs)


def is_space_resource(step_name: str, refs: Iterable[ResourceRef]) -> bool:
    """Exact match: an unqualified name only matches a resource without namespace."""

    parsed = parse_resource_name(step_name)
    if parsed is None:
        return False
    namespace, name = parsed
    return any(ref.name == name and (ref.namespace or None) == namespace for ref in refs)


def collect_available(
    catalog: ResourceCatalog, space_id: str, locale: str
) -> dict[StepKind, list[ResourceRef]]:
    """List every resource kind a step can reference. Failed listings count as empty."""

    listings: dict[StepKind, Callable[[str, str], StoreResult[list[ResourceRef]]]] = {
        StepKind.SKILL: catalog.list_skills,
        StepKind.AGENT: catalog.list_agents,
        StepKind.COMMAND: catalog.list_commands,
    }
    available: dict[StepKind, list[ResourceRef]] = {}
    for kind, list_resources in listings.items():
        result = list_resources(space_id, locale)
        if result.success and result.data is not None:
            available[kind] = result.data
        else:
            logger.warning(
                "Resource catalog unavailable; treating as empty",
                extra={"space_id": space_id, "kind": kind.value, "error": result.error},
            )
            available[kind] = []
    return available


def describe_step(index: int, step: WorkflowStep) -> str:
    return f"Step {index + 1}: {step.kind.value} {(step.name or '').strip()}"


def find_unavailable_steps(
    steps: Sequence[WorkflowStep], catalogs: Mapping[StepKind, Sequence[ResourceRef]]
) -> list[str]:
    """Describe every step whose resource is missing, in step order.

    Message steps are always available. Steps without a name are left to the
    message builder, which turns them into a build error when the step runs.
    """

    missing: list[str] = []
    for index, step in enumerate(steps):
        if step.kind not in RESOURCE_KINDS:
            continue
        name = (step.name or "").strip()
        if not name:
            continue
        if not is_available(name, catalogs.get(step.kind, ())):
            missing.append(describe_step(index, step))
    return missing


def find_non_space_steps(
    steps: Sequence[WorkflowStep], catalogs: Mapping[StepKind, Sequence[ResourceRef]]
) -> list[str]:
    """Describe every skill or agent step that names a resource outside the space.

    Steps whose name does not parse are skipped.
    """

    missing: list[str] = []
    for index, step in enumerate(steps):
        if step.kind not in SPACE_CHECKED_KINDS:
            continue
        name = step.name or ""
        if parse_resource_name(name) is None:
            continue
        if not is_space_resource(name, catalogs.get(step.kind, ())):
            missing.append(f"Step {index + 1}: {step.kind.value} {name}")
    return missing


class MissingResourcesError(Exception):
    """Raised when a workflow references resources its space does not provide."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(f"Workflow contains unavailable resources: {', '.join(self.missing)}")


def ensure_available(
    steps: Sequence[WorkflowStep], catalogs: Mapping[StepKind, Sequence[ResourceRef]]
) -> None:
    missing = find_unavailable_steps(steps, catalogs)
    if missing:
        raise MissingResourcesError(missing)
