"""Workflow engine: evaluate rules against task/card transitions (implements IWorkflowEngine).

Evaluation order, each step short-circuiting the next:

1. rule or workflow inactive          -> suppressed(inactive)
2. resource type, target state, task
   type or workflow scope mismatch    -> suppressed(not_matching)
3. user-only rule, system transition  -> suppressed(not_user_triggered)
4. ledger row exists for the origin   -> suppressed(idempotent)

Otherwise the rule fires: the applied ledger row and one task per attached
template are written in a single savepoint, so a firing is all or nothing.

Only outcomes that settle the origin for good are ledgered: applied and
not_user_triggered. inactive and not_matching depend on rule state and on
which transition was presented, so the same origin may still fire later
(the task reaches the rule's state, or the workflow is switched back on).
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.rule_evaluation import (
    ActingUser,
    RuleEvaluation,
    StateChangeEvent,
    TemplateContext,
)
from taskpool.application.dtos.task import TaskResult
from taskpool.application.dtos.workflow import RuleResult, WorkflowResult
from taskpool.application.interfaces.repositories import (
    IRuleExecutionRepository,
    IRuleRepository,
    ITaskRepository,
    ITaskTemplateRepository,
)
from taskpool.application.interfaces.services import ITaskTemplateRenderer
from taskpool.domain.entities.workflow import RuleEntity, WorkflowEntity
from taskpool.domain.exceptions import ResourceNotFoundException, RuleEvaluationException
from taskpool.infrastructure.exceptions import translate_storage_errors
from taskpool.infrastructure.services.task_template_renderer import TaskTemplateRenderer
from taskpool.shared.enums import RuleOutcome, SuppressionReason
from taskpool.shared.telemetry.logging import get_logger
from taskpool.shared.telemetry.tracing import add_span_attributes, traced

logger = get_logger(__name__)


def _rule_entity(r: RuleResult) -> RuleEntity:
    """Map RuleResult (application DTO) to RuleEntity (domain entity)."""
    return RuleEntity(
        id=r.id,
        workflow_id=r.workflow_id,
        name=r.name,
        resource_type=r.resource_type,
        to_state=r.to_state,
        active=r.active,
        user_triggered_only=r.user_triggered_only,
        task_type_id=r.task_type_id,
    )


def _workflow_entity(w: WorkflowResult) -> WorkflowEntity:
    """Map WorkflowResult (application DTO) to WorkflowEntity (domain entity)."""
    return WorkflowEntity(
        id=w.id,
        org_id=w.org_id,
        project_id=w.project_id,
        name=w.name,
        active=w.active,
        created_by=w.created_by,
    )


class WorkflowEngine:
    """Decides whether a rule fires for an event, applies it and records the outcome."""

    def __init__(
        self,
        db: AsyncSession,
        rule_repo: IRuleRepository,
        execution_repo: IRuleExecutionRepository,
        template_repo: ITaskTemplateRepository,
        task_repo: ITaskRepository,
        *,
        template_renderer: ITaskTemplateRenderer | None = None,
    ) -> None:
        self.db = db
        self.rule_repo = rule_repo
        self.execution_repo = execution_repo
        self.template_repo = template_repo
        self.task_repo = task_repo
        self._template_renderer = template_renderer or TaskTemplateRenderer()

    @traced("workflow_engine.evaluate_rule")
    async def evaluate_rule(
        self,
        rule: RuleResult,
        event: StateChangeEvent,
        acting_user: ActingUser | None = None,
    ) -> RuleEvaluation:
        """Evaluate one rule against one committed transition.

        The rule and its workflow are re-read, so a caller holding a stale
        RuleResult still sees current activation state.

        Args:
            rule: Candidate rule (only its id is trusted).
            event: The task or card transition.
            acting_user: The user who made the transition; None for system
                transitions.

        Returns:
            RuleEvaluation: applied with the created tasks, or suppressed
            with a reason.

        Raises:
            ResourceNotFoundException: The rule no longer exists.
            RuleEvaluationException: Applying the rule failed; nothing was written.
            StorageException: Reading activation or ledger state failed.
        """
        with translate_storage_errors("evaluate_rule"):
            evaluation = await self._evaluate(rule.id, event, acting_user)
        self._observe(evaluation, event)
        return evaluation

    async def _evaluate(
        self,
        rule_id: str,
        event: StateChangeEvent,
        acting_user: ActingUser | None,
    ) -> RuleEvaluation:
        pair = await self.rule_repo.get_rule_with_workflow(rule_id)
        if pair is None:
            raise ResourceNotFoundException("rule", rule_id)
        rule_result, workflow_result = pair
        rule = _rule_entity(rule_result)
        workflow = _workflow_entity(workflow_result)

        reason: SuppressionReason | None = None
        if not rule.is_effectively_active(workflow):
            reason = SuppressionReason.INACTIVE
        elif not (
            rule.matches(event.origin_type, event.to_state, event.task_type_id)
            and workflow.covers(event.org_id, event.project_id)
        ):
            reason = SuppressionReason.NOT_MATCHING
        elif rule.user_triggered_only and acting_user is None:
            reason = SuppressionReason.NOT_USER_TRIGGERED
        elif await self.execution_repo.exists(
            rule_id, event.origin_type.value, event.origin_id
        ):
            return RuleEvaluation.suppressed(rule_id, SuppressionReason.IDEMPOTENT)

        if reason is SuppressionReason.NOT_USER_TRIGGERED:
            await self.execution_repo.record(
                rule_id,
                event.origin_type.value,
                event.origin_id,
                RuleOutcome.SUPPRESSED.value,
                reason.value,
                None,
            )
        if reason is not None:
            return RuleEvaluation.suppressed(rule_id, reason)

        return await self._apply(rule, workflow, event, acting_user)

    async def _apply(
        self,
        rule: RuleEntity,
        workflow: WorkflowEntity,
        event: StateChangeEvent,
        acting_user: ActingUser | None,
    ) -> RuleEvaluation:
        """Write the applied ledger row and every template task in one savepoint."""
        try:
            async with self.db.begin_nested():
                recorded = await self.execution_repo.record(
                    rule.id,
                    event.origin_type.value,
                    event.origin_id,
                    RuleOutcome.APPLIED.value,
                    None,
                    acting_user.id if acting_user else None,
                )
                if recorded is None:
                    # A concurrent evaluation recorded this origin first.
                    return RuleEvaluation.suppressed(
                        rule.id, SuppressionReason.IDEMPOTENT
                    )
                created = await self._instantiate_templates(
                    rule, workflow, event, acting_user
                )
        except Exception as e:
            logger.exception(
                "Rule %s failed for %s (workflow_id=%s)", rule.id, event.origin, workflow.id
            )
            raise RuleEvaluationException(
                rule.id, event.origin_type.value, event.origin_id, str(e)
            ) from e
        return RuleEvaluation.applied(rule.id, created)

    async def _instantiate_templates(
        self,
        rule: RuleEntity,
        workflow: WorkflowEntity,
        event: StateChangeEvent,
        acting_user: ActingUser | None,
    ) -> list[TaskResult]:
        """Create one task per attached template, in execution order.

        Tasks land in the event's org/project and on the origin's card; a
        system transition credits the workflow's creator.
        """
        links = await self.template_repo.list_for_rule(rule.id)
        context = TemplateContext.from_event(event, acting_user)
        created_by = acting_user.id if acting_user else workflow.created_by
        created: list[TaskResult] = []
        for link in links:
            draft = self._template_renderer.instantiate(link.template, context)
            task = await self.task_repo.create_task(
                event.org_id,
                event.project_id,
                draft,
                created_by,
                card_id=event.card_id,
            )
            created.append(task)
        return created

    def _observe(self, evaluation: RuleEvaluation, event: StateChangeEvent) -> None:
        attributes: dict[str, str | int] = {
            "rule.id": evaluation.rule_id,
            "rule.outcome": evaluation.outcome.value,
        }
        if evaluation.reason is not None:
            attributes["rule.suppression_reason"] = evaluation.reason.value
        else:
            attributes["rule.created_tasks"] = len(evaluation.created_tasks)
        add_span_attributes(**attributes)
        if evaluation.is_applied:
            logger.info(
                "Rule %s applied for %s: %d task(s) created",
                evaluation.rule_id,
                event.origin,
                len(evaluation.created_tasks),
            )
        else:
            logger.debug(
                "Rule %s suppressed for %s: %s",
                evaluation.rule_id,
                event.origin,
                evaluation.reason.value if evaluation.reason else None,
            )

    @traced("workflow_engine.find_matching_rules")
    async def find_matching_rules(self, event: StateChangeEvent) -> list[RuleResult]:
        """Return active rules whose trigger matches the event, project workflows first."""
        with translate_storage_errors("find_matching_rules"):
            pairs = await self.rule_repo.find_matching(
                event.org_id,
                event.project_id,
                event.origin_type.value,
                event.to_state,
            )
        return [
            rule
            for rule, _workflow in pairs
            if _rule_entity(rule).matches(
                event.origin_type, event.to_state, event.task_type_id
            )
        ]

    @traced("workflow_engine.process_state_change")
    async def process_state_change(
        self,
        event: StateChangeEvent,
        acting_user: ActingUser | None = None,
    ) -> list[RuleEvaluation]:
        """Evaluate every matching rule; a rule that fails is logged and skipped.

        Each failed firing has already been rolled back to its own savepoint,
        so the remaining rules still run in the caller's transaction.
        """
        evaluations: list[RuleEvaluation] = []
        for rule in await self.find_matching_rules(event):
            try:
                evaluations.append(await self.evaluate_rule(rule, event, acting_user))
            except RuleEvaluationException as e:
                logger.warning(
                    "Skipping rule %s for %s: %s", rule.id, event.origin, e.message
                )
        return evaluations
