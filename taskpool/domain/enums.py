"""Domain enumerations for taskpool.

Enums represent fixed sets of domain values: task and card status,
the resource types rules listen to, and the transitions a user can request.
"""

from enum import Enum


class TaskStatus(str, Enum):
    """Task lifecycle status.

    available -> claimed -> completed, plus claimed -> available (release).
    """

    AVAILABLE = "available"
    CLAIMED = "claimed"
    COMPLETED = "completed"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values as strings.

        Returns:
            List of enum value strings (e.g. for validation or CHECK constraints).
        """
        return [status.value for status in cls]


class CardStatus(str, Enum):
    """Card status, derived from the statuses of the card's tasks."""

    PENDIENTE = "pendiente"
    EN_CURSO = "en_curso"
    CERRADA = "cerrada"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values as strings."""
        return [status.value for status in cls]


class ResourceType(str, Enum):
    """Entity kind a rule listens to (and the origin type of an event)."""

    TASK = "task"
    CARD = "card"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid resource types as strings."""
        return [rt.value for rt in cls]

    def state_values(self) -> list[str]:
        """Return the statuses an entity of this type can be in."""
        if self is ResourceType.TASK:
            return TaskStatus.values()
        return CardStatus.values()


class TaskAction(str, Enum):
    """Transition a user can request on a task."""

    CLAIM = "claim"
    RELEASE = "release"
    COMPLETE = "complete"
