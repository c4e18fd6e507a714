"""Workflow use cases."""

from taskpool.application.use_cases.workflows.workflow_registry import (
    WorkflowRegistryService,
)

__all__ = ["WorkflowRegistryService"]
