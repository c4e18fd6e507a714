"""Domain entities and aggregates.

Pure domain models; no ORM or persistence concerns.
"""

from taskpool.domain.entities.card import derive_card_status
from taskpool.domain.entities.task import TaskEntity
from taskpool.domain.entities.workflow import (
    RuleEntity,
    TaskTemplateEntity,
    WorkflowEntity,
)

__all__ = [
    "RuleEntity",
    "TaskEntity",
    "TaskTemplateEntity",
    "WorkflowEntity",
    "derive_card_status",
]
