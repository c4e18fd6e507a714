"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs or schemas only; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from taskpool.domain.enums import TaskAction

if TYPE_CHECKING:
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
    from taskpool.schemas.workflow import RuleCreate, TaskTemplateCreate


# Task repository interface
class ITaskRepository(Protocol):
    """Protocol for task repository (DIP)."""

    async def get_task(self, task_id: str, org_id: str) -> TaskResult | None:
        """Return the task in the organization, re-read from storage."""

    async def create_task(
        self,
        org_id: str,
        project_id: str,
        draft: TaskDraft,
        created_by: str,
        card_id: str | None = None,
    ) -> TaskResult:
        """Insert a new task at version 1."""

    async def apply_transition(
        self,
        task_id: str,
        org_id: str,
        action: TaskAction,
        user_id: str,
        expected_version: int,
    ) -> TaskResult | None:
        """Run the conditional UPDATE for action; None when zero rows matched."""


# Card repository interface
class ICardRepository(Protocol):
    """Protocol for card repository (DIP)."""

    async def get_card(self, card_id: str, org_id: str) -> CardResult | None:
        """Return the card with its status derived from its tasks."""

    async def create_card(
        self,
        org_id: str,
        project_id: str,
        title: str,
        created_by: str,
        description: str | None = None,
        color: str | None = None,
    ) -> CardResult:
        """Insert a new card (no tasks, status pendiente)."""


# Workflow repository interface
class IWorkflowRepository(Protocol):
    """Protocol for workflow repository (DIP)."""

    async def get_workflow(self, workflow_id: str) -> WorkflowResult | None:
        """Return the workflow regardless of scope."""

    async def get_in_scope(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> WorkflowResult | None:
        """Return the workflow only if it lives in exactly this (org, project) scope."""

    async def get_by_name(
        self, org_id: str, project_id: str | None, name: str
    ) -> WorkflowResult | None:
        """Return the workflow with this name in this scope."""

    async def list_workflows(
        self, org_id: str, project_id: str | None
    ) -> list[WorkflowResult]:
        """Return workflows in the scope, with rule counts, ordered by name."""

    async def create_workflow(
        self,
        org_id: str,
        project_id: str | None,
        name: str,
        description: str | None,
        active: bool,
        created_by: str,
    ) -> WorkflowResult:
        """Insert a workflow; raises IntegrityError on a name collision."""

    async def update_workflow(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        changes: dict[str, Any],
    ) -> WorkflowResult | None:
        """Apply name/description changes in scope; None if no row matched."""

    async def set_active_cascade(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        active: bool,
    ) -> bool:
        """Set the workflow flag and every child rule's flag; False if not found."""

    async def delete_workflow(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> bool:
        """Delete the workflow (rules cascade); False if not found."""


# Rule repository interface
class IRuleRepository(Protocol):
    """Protocol for rule repository (DIP)."""

    async def get_rule(self, rule_id: str) -> RuleResult | None:
        """Return the rule, re-read from storage."""

    async def get_rule_with_workflow(
        self, rule_id: str
    ) -> tuple[RuleResult, WorkflowResult] | None:
        """Return the rule and its parent workflow in one read."""

    async def list_rules(self, workflow_id: str) -> list[RuleResult]:
        """Return the workflow's rules ordered by creation."""

    async def create_rule(
        self, workflow_id: str, data: RuleCreate, active: bool
    ) -> RuleResult:
        """Insert a rule with the given effective active flag."""

    async def update_rule(
        self, rule_id: str, changes: dict[str, Any]
    ) -> RuleResult | None:
        """Apply changes; None if the rule does not exist."""

    async def delete_rule(self, rule_id: str) -> bool:
        """Delete the rule (ledger and template links cascade)."""

    async def find_matching(
        self,
        org_id: str,
        project_id: str,
        resource_type: str,
        to_state: str,
    ) -> list[tuple[RuleResult, WorkflowResult]]:
        """Return active rules in active workflows covering the scope, project first."""


# Task template repository interface
class ITaskTemplateRepository(Protocol):
    """Protocol for task template repository (DIP)."""

    async def get_template(
        self, template_id: str, org_id: str
    ) -> TaskTemplateResult | None:
        """Return the template in the organization."""

    async def list_templates(
        self, org_id: str, project_id: str | None
    ) -> list[TaskTemplateResult]:
        """Return org-wide templates plus, when project_id is set, that project's."""

    async def create_template(
        self,
        org_id: str,
        project_id: str | None,
        data: TaskTemplateCreate,
        created_by: str,
    ) -> TaskTemplateResult:
        """Insert a template."""

    async def update_template(
        self, template_id: str, org_id: str, changes: dict[str, Any]
    ) -> TaskTemplateResult | None:
        """Apply changes; None if not found."""

    async def delete_template(self, template_id: str, org_id: str) -> bool:
        """Delete the template (its rule links cascade)."""

    async def attach(
        self, rule_id: str, template_id: str, execution_order: int
    ) -> None:
        """Link template to rule, or update the order of an existing link."""

    async def detach(self, rule_id: str, template_id: str) -> bool:
        """Remove the link only; False if it did not exist."""

    async def list_for_rule(self, rule_id: str) -> list[RuleTemplateResult]:
        """Return templates attached to the rule in execution order."""


# Rule execution ledger interface
class IRuleExecutionRepository(Protocol):
    """Protocol for the rule execution ledger (DIP)."""

    async def exists(self, rule_id: str, origin_type: str, origin_id: str) -> bool:
        """Return whether an outcome is already recorded for (rule, origin)."""

    async def insert(
        self,
        rule_id: str,
        origin_type: str,
        origin_id: str,
        outcome: str,
        suppression_reason: str | None,
        user_id: str | None,
    ) -> RuleExecutionResult:
        """Insert a ledger row; raises IntegrityError if (rule, origin) exists."""

    async def record(
        self,
        rule_id: str,
        origin_type: str,
        origin_id: str,
        outcome: str,
        suppression_reason: str | None,
        user_id: str | None,
    ) -> RuleExecutionResult | None:
        """Insert a ledger row in its own savepoint; None if (rule, origin) exists."""

    async def list_for_rule(
        self,
        rule_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RuleExecutionResult]:
        """Return ledger rows for the rule, newest first."""

    async def count_for_rule(
        self,
        rule_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        """Return the number of ledger rows for the rule in the window."""

    async def rule_metrics(
        self,
        rule_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> RuleMetrics | None:
        """Return applied/suppressed totals for one rule; None if rule missing."""

    async def workflow_metrics(
        self,
        workflow_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> WorkflowRuleMetrics:
        """Return per-rule totals for every rule of the workflow."""


# Task audit trail interface
class ITaskEventRepository(Protocol):
    """Protocol for the task audit trail (DIP)."""

    async def append(
        self,
        org_id: str,
        project_id: str,
        origin_type: str,
        origin_id: str,
        actor_user_id: str | None,
        event_type: str,
        from_status: str | None,
        to_status: str,
    ) -> TaskEventResult:
        """Append one audit row."""

    async def list_for_origin(
        self, origin_type: str, origin_id: str
    ) -> list[TaskEventResult]:
        """Return audit rows for the origin, oldest first."""


# "Now working" tracker interface
class INowWorkingTracker(Protocol):
    """Protocol for the per-user "currently working on" tracker (DIP)."""

    async def start_session(self, user_id: str, task_id: str) -> WorkSessionResult:
        """Open a session (at most one active session per task)."""

    async def end_sessions_for_task(
        self, task_id: str, user_id: str, reason: str
    ) -> int:
        """Close the user's active sessions on the task; returns rows closed."""

    async def get_active_for_task(self, task_id: str) -> WorkSessionResult | None:
        """Return the active session on the task, if any."""

    async def list_active_for_user(self, user_id: str) -> list[WorkSessionResult]:
        """Return the user's open sessions, oldest first."""
