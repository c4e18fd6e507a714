"""Application DTOs (no ORM dependency)."""

from taskpool.application.dtos.rule_evaluation import (
    ActingUser,
    RuleEvaluation,
    StateChangeEvent,
    TemplateContext,
)
from taskpool.application.dtos.task import (
    CardResult,
    TaskDraft,
    TaskEventResult,
    TaskResult,
    WorkSessionResult,
)
from taskpool.application.dtos.workflow import (
    RuleExecutionResult,
    RuleMetrics,
    RuleResult,
    RuleTemplateResult,
    TaskTemplateResult,
    WorkflowResult,
    WorkflowRuleMetrics,
)

__all__ = [
    "ActingUser",
    "CardResult",
    "RuleEvaluation",
    "RuleExecutionResult",
    "RuleMetrics",
    "RuleResult",
    "RuleTemplateResult",
    "StateChangeEvent",
    "TaskDraft",
    "TaskEventResult",
    "TaskResult",
    "TaskTemplateResult",
    "TemplateContext",
    "WorkSessionResult",
    "WorkflowResult",
    "WorkflowRuleMetrics",
]
