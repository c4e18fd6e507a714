"""Task domain entity.

Owns the legal-transition table of the task state machine and the
classification of a failed transition. Persistence enforces the same
rules through a single conditional UPDATE; this entity decides which
error the caller sees when that update matches nothing.
"""

from __future__ import annotations

from dataclasses import dataclass

from taskpool.domain.enums import TaskAction, TaskStatus
from taskpool.domain.exceptions import (
    TaskConflictException,
    TaskForbiddenException,
    TaskpoolException,
    ValidationException,
)

# action -> (required source status, resulting status)
TRANSITIONS: dict[TaskAction, tuple[TaskStatus, TaskStatus]] = {
    TaskAction.CLAIM: (TaskStatus.AVAILABLE, TaskStatus.CLAIMED),
    TaskAction.RELEASE: (TaskStatus.CLAIMED, TaskStatus.AVAILABLE),
    TaskAction.COMPLETE: (TaskStatus.CLAIMED, TaskStatus.COMPLETED),
}


@dataclass
class TaskEntity:
    """Domain entity for a task in the shared pool.

    Invariant: claimed_by is set if and only if status is claimed or completed.
    Validation runs on construction.
    """

    id: str
    org_id: str
    project_id: str
    type_id: str
    status: TaskStatus
    claimed_by: str | None
    version: int
    card_id: str | None = None

    def __post_init__(self) -> None:
        self.status = TaskStatus(self.status)
        self.validate()

    def validate(self) -> None:
        """Validate task business rules. Raises ValidationException if invalid."""
        if not self.id:
            raise ValidationException("Task ID is required", field="id")
        if not self.org_id:
            raise ValidationException("Task must belong to an organization", field="org_id")
        if self.version < 1:
            raise ValidationException("Task version must be >= 1", field="version")
        held = self.status in (TaskStatus.CLAIMED, TaskStatus.COMPLETED)
        if held != (self.claimed_by is not None):
            raise ValidationException(
                f"claimed_by must be set only when status is claimed or completed "
                f"(status={self.status.value})",
                field="claimed_by",
            )

    @staticmethod
    def source_status(action: TaskAction) -> TaskStatus:
        """Return the status a task must be in for the action to apply."""
        return TRANSITIONS[action][0]

    @staticmethod
    def target_status(action: TaskAction) -> TaskStatus:
        """Return the status a task ends in after the action."""
        return TRANSITIONS[action][1]

    def is_claimed_by_other(self, user_id: str) -> bool:
        """Return whether someone other than user_id holds the task."""
        return self.claimed_by is not None and self.claimed_by != user_id

    def transition_error(
        self, action: TaskAction, user_id: str, expected_version: int
    ) -> TaskpoolException | None:
        """Return the error the action would raise against this state, or None.

        Check order: claimant (release/complete only), then source status,
        then version.

        Args:
            action: Requested transition.
            user_id: Acting user.
            expected_version: Version the caller last observed.

        Returns:
            TaskForbiddenException, TaskConflictException, or None when legal.
        """
        if action is not TaskAction.CLAIM and self.is_claimed_by_other(user_id):
            return TaskForbiddenException(self.id, action.value)
        if self.status is not self.source_status(action):
            reason = (
                "not_available" if action is TaskAction.CLAIM else "invalid_transition"
            )
            return TaskConflictException(
                self.id,
                reason,
                expected_version=expected_version,
                current_version=self.version,
                current_status=self.status.value,
            )
        if self.version != expected_version:
            return self.version_mismatch(expected_version)
        return None

    def classify_failure(
        self, action: TaskAction, user_id: str, expected_version: int
    ) -> TaskpoolException:
        """Explain why a conditional update on this task affected zero rows.

        Called with the re-read state. If the re-read state would now allow
        the transition, a concurrent writer moved the row in between, which
        is reported as a version mismatch.
        """
        return self.transition_error(
            action, user_id, expected_version
        ) or self.version_mismatch(expected_version)

    def version_mismatch(self, expected_version: int) -> TaskConflictException:
        return TaskConflictException(
            self.id,
            "version_mismatch",
            expected_version=expected_version,
            current_version=self.version,
            current_status=self.status.value,
        )
