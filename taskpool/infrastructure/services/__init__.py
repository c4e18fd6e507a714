"""Infrastructure implementations of application service interfaces."""

from taskpool.infrastructure.services.task_template_renderer import (
    PLACEHOLDERS,
    TaskTemplateRenderer,
)
from taskpool.infrastructure.services.workflow_engine import WorkflowEngine

__all__ = [
    "PLACEHOLDERS",
    "TaskTemplateRenderer",
    "WorkflowEngine",
]
