"""Domain value objects for taskpool.

Value objects are immutable types that represent domain concepts with
self-validation. They have no identity, only value.
"""

from dataclasses import dataclass

from taskpool.core.constants import DEFAULT_PRIORITY, PRIORITY_MAX, PRIORITY_MIN
from taskpool.domain.enums import ResourceType


@dataclass(frozen=True)
class Priority:
    """Value object for task priority (1 = highest, 5 = lowest)."""

    value: int = DEFAULT_PRIORITY

    def __post_init__(self) -> None:
        """Validate range.

        Raises:
            ValueError: If the priority is outside PRIORITY_MIN..PRIORITY_MAX.
        """
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError("Priority must be an integer")
        if not PRIORITY_MIN <= self.value <= PRIORITY_MAX:
            raise ValueError(
                f"Priority must be between {PRIORITY_MIN} and {PRIORITY_MAX}"
            )


@dataclass(frozen=True)
class Origin:
    """The task or card whose state transition triggered rule evaluation.

    (origin_type, origin_id) is the idempotency key of the rule ledger
    together with the rule id.
    """

    origin_type: ResourceType
    origin_id: str

    def __post_init__(self) -> None:
        """Coerce a plain string type and reject an empty id.

        Raises:
            ValueError: If origin_type is unknown or origin_id is empty.
        """
        object.__setattr__(self, "origin_type", ResourceType(self.origin_type))
        if not self.origin_id:
            raise ValueError("Origin id must be a non-empty string")

    def __str__(self) -> str:
        return f"{self.origin_type.value}:{self.origin_id}"
