"""Service interfaces (ports) for the application layer.

Protocols define contracts for application services (DIP).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from taskpool.application.dtos.rule_evaluation import (
        ActingUser,
        RuleEvaluation,
        StateChangeEvent,
        TemplateContext,
    )
    from taskpool.application.dtos.task import TaskDraft
    from taskpool.application.dtos.workflow import RuleResult, TaskTemplateResult


# Template instantiator interface
class ITaskTemplateRenderer(Protocol):
    """Protocol for expanding task templates into task drafts (pure)."""

    def render(self, text: str | None, context: TemplateContext) -> str | None:
        """Substitute placeholders; unknown ones and invalid templates are kept."""

    def instantiate(
        self, template: TaskTemplateResult, context: TemplateContext
    ) -> TaskDraft:
        """Return the draft of the task the template describes in this context."""


# Rule evaluation engine interface
class IWorkflowEngine(Protocol):
    """Protocol for rule evaluation triggered by task and card transitions."""

    async def evaluate_rule(
        self,
        rule: RuleResult,
        event: StateChangeEvent,
        acting_user: ActingUser | None,
    ) -> RuleEvaluation:
        """Evaluate one rule against one event; applied or suppressed."""

    async def find_matching_rules(self, event: StateChangeEvent) -> list[RuleResult]:
        """Return the active rules whose trigger matches the event."""

    async def process_state_change(
        self,
        event: StateChangeEvent,
        acting_user: ActingUser | None,
    ) -> list[RuleEvaluation]:
        """Evaluate every matching rule; returns one evaluation per rule."""
