"""Task use cases."""

from taskpool.application.use_cases.tasks.task_lifecycle import TaskLifecycleService

__all__ = ["TaskLifecycleService"]
