"""Workflow, rule and task template command schemas.

Validated at the boundary before the registry touches storage. Partial
updates only touch the fields that were given; a nullable field given as
None is cleared.
"""

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field, model_validator

from taskpool.core.constants import DEFAULT_PRIORITY, PRIORITY_MAX, PRIORITY_MIN
from taskpool.domain.enums import ResourceType


def _check_to_state(resource_type: str, to_state: str) -> None:
    allowed = ResourceType(resource_type).state_values()
    if to_state not in allowed:
        raise ValueError(
            f"to_state must be one of {allowed} for {resource_type} rules, got: {to_state!r}"
        )


class WorkflowCreate(BaseModel):
    """Command for creating a workflow."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    active: bool = False


class PartialUpdate(BaseModel):
    """Base for partial updates: unset fields keep the stored value.

    Fields listed in CLEARABLE map to nullable columns, so an explicit None
    clears them. None for any other field is treated as not given.
    """

    CLEARABLE: ClassVar[frozenset[str]] = frozenset()

    def changes(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in self.CLEARABLE
        }


class WorkflowUpdate(PartialUpdate):
    """Command for updating a workflow (partial)."""

    CLEARABLE = frozenset({"description"})

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    active: bool | None = None


class RuleCreate(BaseModel):
    """Command for creating a rule inside a workflow."""

    name: str = Field(..., min_length=1, max_length=255)
    goal: str | None = None
    resource_type: Literal["task", "card"]
    task_type_id: str | None = Field(default=None, min_length=1)
    to_state: str = Field(..., min_length=1, max_length=32)
    active: bool = True
    user_triggered_only: bool = True

    @model_validator(mode="after")
    def validate_trigger(self) -> "RuleCreate":
        """Target state must belong to the resource type; cards ignore task type."""
        _check_to_state(self.resource_type, self.to_state)
        if self.resource_type == ResourceType.CARD.value:
            self.task_type_id = None
        return self


class RuleUpdate(PartialUpdate):
    """Command for updating a rule (partial).

    to_state is checked against the stored resource type by the registry
    when only one of the two is given. goal=None and task_type_id=None
    clear the goal and the task type filter.
    """

    CLEARABLE = frozenset({"goal", "task_type_id"})

    name: str | None = Field(default=None, min_length=1, max_length=255)
    goal: str | None = None
    resource_type: Literal["task", "card"] | None = None
    task_type_id: str | None = Field(default=None, min_length=1)
    to_state: str | None = Field(default=None, min_length=1, max_length=32)
    active: bool | None = None
    user_triggered_only: bool | None = None

    @model_validator(mode="after")
    def validate_trigger(self) -> "RuleUpdate":
        if self.resource_type is not None and self.to_state is not None:
            _check_to_state(self.resource_type, self.to_state)
        return self


class TaskTemplateCreate(BaseModel):
    """Command for creating a task template."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    type_id: str = Field(..., min_length=1)
    priority: int = Field(default=DEFAULT_PRIORITY, ge=PRIORITY_MIN, le=PRIORITY_MAX)


class TaskTemplateUpdate(PartialUpdate):
    """Command for updating a task template (partial)."""

    CLEARABLE = frozenset({"description"})

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    type_id: str | None = Field(default=None, min_length=1)
    priority: int | None = Field(default=None, ge=PRIORITY_MIN, le=PRIORITY_MAX)
