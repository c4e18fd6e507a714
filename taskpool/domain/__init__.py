"""Domain layer: entities, value objects, enums, and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from taskpool.domain.entities import (
    RuleEntity,
    TaskEntity,
    TaskTemplateEntity,
    WorkflowEntity,
    derive_card_status,
)
from taskpool.domain.enums import CardStatus, ResourceType, TaskAction, TaskStatus
from taskpool.domain.exceptions import (
    AuthorizationException,
    DatabaseNotConfiguredException,
    ResourceNotFoundException,
    RuleEvaluationException,
    TaskConflictException,
    TaskForbiddenException,
    TaskpoolException,
    ValidationException,
    WorkflowAlreadyExistsException,
)
from taskpool.domain.value_objects import Origin, Priority

__all__ = [
    # Entities
    "RuleEntity",
    "TaskEntity",
    "TaskTemplateEntity",
    "WorkflowEntity",
    "derive_card_status",
    # Enums
    "CardStatus",
    "ResourceType",
    "TaskAction",
    "TaskStatus",
    # Exceptions
    "AuthorizationException",
    "DatabaseNotConfiguredException",
    "ResourceNotFoundException",
    "RuleEvaluationException",
    "TaskConflictException",
    "TaskForbiddenException",
    "TaskpoolException",
    "ValidationException",
    "WorkflowAlreadyExistsException",
    # Value objects
    "Origin",
    "Priority",
]
