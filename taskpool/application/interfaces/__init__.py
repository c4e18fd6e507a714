"""Application interfaces (ports): repository and service protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from taskpool.infrastructure.
"""

from taskpool.application.interfaces.repositories import (
    ICardRepository,
    INowWorkingTracker,
    IRuleExecutionRepository,
    IRuleRepository,
    ITaskEventRepository,
    ITaskRepository,
    ITaskTemplateRepository,
    IWorkflowRepository,
)
from taskpool.application.interfaces.services import (
    ITaskTemplateRenderer,
    IWorkflowEngine,
)

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
]
