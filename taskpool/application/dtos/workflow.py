"""DTOs for workflows, rules, task templates and the rule execution ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class WorkflowResult:
    """Workflow read model (rule_count filled by list queries)."""

    id: str
    org_id: str
    project_id: str | None
    name: str
    description: str | None
    active: bool
    created_by: str
    created_at: datetime
    rule_count: int = 0


@dataclass(frozen=True)
class RuleResult:
    """Rule read model."""

    id: str
    workflow_id: str
    name: str
    goal: str | None
    resource_type: str
    task_type_id: str | None
    to_state: str
    active: bool
    user_triggered_only: bool
    created_at: datetime


@dataclass(frozen=True)
class TaskTemplateResult:
    """Task template read model."""

    id: str
    org_id: str
    project_id: str | None
    name: str
    description: str | None
    type_id: str
    priority: int
    created_by: str
    created_at: datetime


@dataclass(frozen=True)
class RuleTemplateResult:
    """A template attached to a rule, with its execution order."""

    rule_id: str
    template: TaskTemplateResult
    execution_order: int


@dataclass(frozen=True)
class RuleExecutionResult:
    """One row of the rule execution ledger."""

    id: str
    rule_id: str
    origin_type: str
    origin_id: str
    outcome: str
    suppression_reason: str | None
    user_id: str | None
    created_at: datetime


@dataclass(frozen=True)
class RuleMetrics:
    """Ledger aggregate for one rule over a time window."""

    rule_id: str
    rule_name: str
    evaluated_count: int
    applied_count: int
    suppressed_count: int
    suppression_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class WorkflowRuleMetrics:
    """Ledger aggregate for every rule of one workflow."""

    workflow_id: str
    evaluated_count: int
    applied_count: int
    suppressed_count: int
    rules: tuple[RuleMetrics, ...] = ()
