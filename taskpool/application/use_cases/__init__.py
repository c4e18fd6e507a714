"""Application use cases (orchestrate repositories and domain entities)."""

from taskpool.application.use_cases.tasks import TaskLifecycleService
from taskpool.application.use_cases.workflows import WorkflowRegistryService

__all__ = ["TaskLifecycleService", "WorkflowRegistryService"]
