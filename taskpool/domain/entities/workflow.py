"""Workflow domain entities.

A workflow is a named container of rules scoped to an organization or to
one project. A rule watches one resource type for a target state and,
when it fires, instantiates its attached task templates.
"""

from dataclasses import dataclass

from taskpool.domain.enums import ResourceType
from taskpool.domain.exceptions import ValidationException
from taskpool.domain.value_objects.core import Priority


@dataclass
class WorkflowEntity:
    """Domain entity for a workflow (rule container)."""

    id: str
    org_id: str
    project_id: str | None
    name: str
    active: bool
    created_by: str

    @property
    def is_org_wide(self) -> bool:
        """True when the workflow applies to every project of its organization."""
        return self.project_id is None

    def covers(self, org_id: str, project_id: str) -> bool:
        """Return whether an event in (org_id, project_id) is in this workflow's scope."""
        if self.org_id != org_id:
            return False
        return self.is_org_wide or self.project_id == project_id


@dataclass
class RuleEntity:
    """Domain entity for a rule (trigger criteria plus template actions).

    Effective activation is the AND of the rule's and its workflow's flags.
    task_type_id only applies to task rules; it is ignored for card rules.
    """

    id: str
    workflow_id: str
    name: str
    resource_type: ResourceType
    to_state: str
    active: bool
    user_triggered_only: bool = True
    task_type_id: str | None = None

    def __post_init__(self) -> None:
        self.resource_type = ResourceType(self.resource_type)
        self.validate()

    def validate(self) -> None:
        """Validate the target state against the resource type. Raises ValidationException."""
        if self.to_state not in self.resource_type.state_values():
            raise ValidationException(
                f"to_state '{self.to_state}' is not a {self.resource_type.value} status",
                field="to_state",
            )

    def is_effectively_active(self, workflow: WorkflowEntity) -> bool:
        """Return whether the rule may fire (rule and workflow both active)."""
        return self.active and workflow.active

    def matches(
        self,
        resource_type: ResourceType,
        to_state: str,
        task_type_id: str | None,
    ) -> bool:
        """Return whether an event's resource type, target state and type match.

        Args:
            resource_type: Origin type of the event.
            to_state: Status the origin moved into.
            task_type_id: Type of the origin task (None for cards, or when
                the event carries no type, which skips the filter).

        Returns:
            True if the event meets this rule's trigger criteria.
        """
        if ResourceType(resource_type) is not self.resource_type:
            return False
        if to_state != self.to_state:
            return False
        if (
            self.resource_type is ResourceType.TASK
            and self.task_type_id is not None
            and task_type_id is not None
        ):
            return task_type_id == self.task_type_id
        return True


@dataclass
class TaskTemplateEntity:
    """Domain entity for a reusable task blueprint."""

    id: str
    org_id: str
    project_id: str | None
    name: str
    description: str | None
    type_id: str
    priority: Priority

    def __post_init__(self) -> None:
        if not isinstance(self.priority, Priority):
            try:
                self.priority = Priority(self.priority)
            except ValueError as e:
                raise ValidationException(str(e), field="priority") from e
        if not self.name:
            raise ValidationException("Template name is required", field="name")

    def available_to(self, org_id: str, project_id: str | None) -> bool:
        """Return whether the template can be attached to a rule in this scope."""
        if self.org_id != org_id:
            return False
        return self.project_id is None or self.project_id == project_id
