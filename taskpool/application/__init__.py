"""Application layer: interfaces, DTOs, use cases.

Depends only on domain and protocol definitions (DIP).
Infrastructure implements the interfaces (repositories, renderer, engine).
"""

from taskpool.application.interfaces import (
    ICardRepository,
    INowWorkingTracker,
    IRuleExecutionRepository,
    IRuleRepository,
    ITaskEventRepository,
    ITaskRepository,
    ITaskTemplateRenderer,
    ITaskTemplateRepository,
    IWorkflowEngine,
    IWorkflowRepository,
)
from taskpool.application.use_cases import TaskLifecycleService, WorkflowRegistryService

__all__ = [
    "ICardRepository",
    "INowWorkingTracker",
    "IRuleExecutionRepository",
    "IRuleRepository",
    "ITaskEventRepository",
    "ITaskRepository",
    "ITaskTemplateRenderer",
    "ITaskTemplateRepository",
    "IWorkflowEngine",
    "IWorkflowRepository",
    "TaskLifecycleService",
    "WorkflowRegistryService",
]
