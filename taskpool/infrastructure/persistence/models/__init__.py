"""Persistence models: ORM entities and mixins."""

from taskpool.infrastructure.persistence.models.mixins import (
    CreatedAtMixin,
    CuidMixin,
    OrgMixin,
    OrgScopedModel,
    VersionedMixin,
)
from taskpool.infrastructure.persistence.models.task import Card, Task
from taskpool.infrastructure.persistence.models.task_event import TaskEvent
from taskpool.infrastructure.persistence.models.work_session import WorkSession
from taskpool.infrastructure.persistence.models.workflow import (
    Rule,
    RuleExecution,
    RuleTemplate,
    TaskTemplate,
    Workflow,
)

__all__ = [
    "Card",
    "Task",
    "TaskEvent",
    "WorkSession",
    "Workflow",
    "Rule",
    "TaskTemplate",
    "RuleTemplate",
    "RuleExecution",
    "CuidMixin",
    "OrgMixin",
    "CreatedAtMixin",
    "VersionedMixin",
    "OrgScopedModel",
]
