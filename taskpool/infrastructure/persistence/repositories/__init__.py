"""SQLAlchemy repositories. Each implements one application port."""

from taskpool.infrastructure.persistence.repositories.card_repo import CardRepository
from taskpool.infrastructure.persistence.repositories.rule_execution_repo import (
    RuleExecutionRepository,
)
from taskpool.infrastructure.persistence.repositories.rule_repo import RuleRepository
from taskpool.infrastructure.persistence.repositories.task_event_repo import (
    TaskEventRepository,
)
from taskpool.infrastructure.persistence.repositories.task_repo import TaskRepository
from taskpool.infrastructure.persistence.repositories.task_template_repo import (
    TaskTemplateRepository,
)
from taskpool.infrastructure.persistence.repositories.work_session_repo import (
    WorkSessionRepository,
)
from taskpool.infrastructure.persistence.repositories.workflow_repo import (
    WorkflowRepository,
)

__all__ = [
    "CardRepository",
    "RuleExecutionRepository",
    "RuleRepository",
    "TaskEventRepository",
    "TaskRepository",
    "TaskTemplateRepository",
    "WorkSessionRepository",
    "WorkflowRepository",
]
