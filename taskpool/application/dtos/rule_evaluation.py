"""DTOs for rule evaluation: the triggering event, the actor and the outcome."""

from __future__ import annotations

from dataclasses import dataclass, field

from taskpool.application.dtos.task import CardResult, TaskResult
from taskpool.domain.enums import ResourceType
from taskpool.domain.value_objects.core import Origin
from taskpool.shared.enums import RuleOutcome, SuppressionReason

# Shown for {{user}} when a transition was not made by a person.
SYSTEM_ACTOR_NAME = "system"


@dataclass(frozen=True)
class ActingUser:
    """The user whose action triggered the transition."""

    id: str
    display_name: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.id


@dataclass(frozen=True)
class StateChangeEvent:
    """A committed task or card transition, as presented to the engine.

    task_type_id is only set for task origins. card_id is the card new
    tasks should join: the task's card for task events, the card itself
    for card events.
    """

    org_id: str
    project_id: str
    origin_type: ResourceType
    origin_id: str
    to_state: str
    from_state: str | None = None
    origin_title: str | None = None
    task_type_id: str | None = None
    card_id: str | None = None
    project_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin_type", ResourceType(self.origin_type))

    @property
    def origin(self) -> Origin:
        return Origin(self.origin_type, self.origin_id)

    @classmethod
    def for_task(
        cls,
        task: TaskResult,
        from_state: str | None,
        project_name: str | None = None,
    ) -> StateChangeEvent:
        """Build the event for a task that just moved to task.status."""
        return cls(
            org_id=task.org_id,
            project_id=task.project_id,
            origin_type=ResourceType.TASK,
            origin_id=task.id,
            to_state=task.status,
            from_state=from_state,
            origin_title=task.title,
            task_type_id=task.type_id,
            card_id=task.card_id,
            project_name=project_name,
        )

    @classmethod
    def for_card(
        cls,
        card: CardResult,
        from_state: str | None,
        project_name: str | None = None,
    ) -> StateChangeEvent:
        """Build the event for a card whose derived status just changed."""
        return cls(
            org_id=card.org_id,
            project_id=card.project_id,
            origin_type=ResourceType.CARD,
            origin_id=card.id,
            to_state=card.status.value,
            from_state=from_state,
            origin_title=card.title,
            card_id=card.id,
            project_name=project_name,
        )


@dataclass(frozen=True)
class TemplateContext:
    """Values for the placeholders a task template may reference."""

    origin: str
    origin_id: str
    origin_type: str
    from_state: str
    to_state: str
    project: str
    user: str

    @classmethod
    def from_event(
        cls, event: StateChangeEvent, acting_user: ActingUser | None
    ) -> TemplateContext:
        return cls(
            origin=event.origin_title or event.origin_id,
            origin_id=event.origin_id,
            origin_type=event.origin_type.value,
            from_state=event.from_state or "",
            to_state=event.to_state,
            project=event.project_name or event.project_id,
            user=acting_user.label if acting_user else SYSTEM_ACTOR_NAME,
        )

    def as_dict(self) -> dict[str, str]:
        return {
            "origin": self.origin,
            "origin_id": self.origin_id,
            "origin_type": self.origin_type,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "project": self.project,
            "user": self.user,
        }


@dataclass(frozen=True)
class RuleEvaluation:
    """Outcome of evaluating one rule against one event.

    Either applied (created_tasks holds one task per attached template)
    or suppressed with a reason. Never both.
    """

    rule_id: str
    outcome: RuleOutcome
    reason: SuppressionReason | None = None
    created_tasks: tuple[TaskResult, ...] = field(default_factory=tuple)

    @classmethod
    def applied(
        cls, rule_id: str, created_tasks: list[TaskResult] | tuple[TaskResult, ...]
    ) -> RuleEvaluation:
        return cls(rule_id, RuleOutcome.APPLIED, None, tuple(created_tasks))

    @classmethod
    def suppressed(cls, rule_id: str, reason: SuppressionReason) -> RuleEvaluation:
        return cls(rule_id, RuleOutcome.SUPPRESSED, reason)

    @property
    def is_applied(self) -> bool:
        return self.outcome is RuleOutcome.APPLIED
