"""Workflow definition models.

Definitions are owned by the workflow store and treated as read-only
snapshots by the run engine. On disk they use camelCase keys; in Python the
attributes are snake_case.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StepKind(str, Enum):
    SKILL = "skill"
    AGENT = "agent"
    COMMAND = "command"
    MESSAGE = "message"


# Kinds that reference a catalog resource by name.
RESOURCE_KINDS: frozenset[StepKind] = frozenset({StepKind.SKILL, StepKind.AGENT, StepKind.COMMAND})


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class WorkflowStep(_CamelModel):
    id: str
    kind: StepKind = Field(alias="type")
    name: str | None = None
    input: str | None = None
    args: str | None = Field(default=None, description="Skill arguments (skill steps only)")
    summarize_after: bool = Field(
        default=False,
        description="Summarize and hand off to a fresh conversation after this step",
    )


class WorkflowSettings(_CamelModel):
    thinking_enabled: bool | None = None
    ai_browser_enabled: bool | None = None


class WorkflowMeta(_CamelModel):
    """Index entry for a workflow (everything but the steps)."""

    id: str
    space_id: str
    name: str
    description: str | None = None
    created_at: str = ""
    updated_at: str = ""
    last_run_at: str | None = None
    last_conversation_id: str | None = None


class WorkflowDefinition(WorkflowMeta):
    steps: list[WorkflowStep] = Field(default_factory=list)
    settings: WorkflowSettings | None = None

    def to_meta(self) -> WorkflowMeta:
        return WorkflowMeta.model_validate(self.model_dump(exclude={"steps", "settings"}))
