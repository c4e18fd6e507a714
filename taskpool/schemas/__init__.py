"""Pydantic command schemas for the workflow registry."""

from taskpool.schemas.workflow import (
    RuleCreate,
    RuleUpdate,
    TaskTemplateCreate,
    TaskTemplateUpdate,
    WorkflowCreate,
    WorkflowUpdate,
)

__all__ = [
    "RuleCreate",
    "RuleUpdate",
    "TaskTemplateCreate",
    "TaskTemplateUpdate",
    "WorkflowCreate",
    "WorkflowUpdate",
]
