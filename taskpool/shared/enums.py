"""Shared enumerations for taskpool.

Cross-cutting enums used by application and infrastructure (rule ledger,
task audit trail, work sessions). Domain state enums (task and card status,
resource type) live in taskpool.domain.enums.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class RuleOutcome(_ValuesMixin, str, Enum):
    """Outcome recorded in the rule execution ledger."""

    APPLIED = "applied"
    SUPPRESSED = "suppressed"


class SuppressionReason(_ValuesMixin, str, Enum):
    """Why a rule evaluation did not fire.

    Checked in declaration order; the first one that holds is reported.
    """

    INACTIVE = "inactive"
    NOT_MATCHING = "not_matching"
    NOT_USER_TRIGGERED = "not_user_triggered"
    IDEMPOTENT = "idempotent"


class TaskEventType(_ValuesMixin, str, Enum):
    """Audit trail entry type for task transitions."""

    CLAIMED = "task_claimed"
    RELEASED = "task_released"
    COMPLETED = "task_completed"


class WorkSessionEndReason(_ValuesMixin, str, Enum):
    """Why a "now working" session was closed."""

    USER_PAUSE = "user_pause"
    TASK_RELEASED = "task_released"
    TASK_COMPLETED = "task_completed"
