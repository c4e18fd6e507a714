"""Integration tests: rule evaluation, ledger and template tasks (SQLite)."""

import pytest
from sqlalchemy import func, select

from taskpool.application.dtos.rule_evaluation import ActingUser, StateChangeEvent
from taskpool.core.composition import Services
from taskpool.domain.exceptions import RuleEvaluationException
from taskpool.infrastructure.persistence.models.task import Task
from taskpool.infrastructure.persistence.models.workflow import RuleExecution
from taskpool.schemas.workflow import RuleCreate, TaskTemplateCreate
from taskpool.shared.enums import RuleOutcome, SuppressionReason

USER = ActingUser("u5", "Ana")


async def _rule_with_template(
    services: Services,
    project_id: str | None = "p1",
    workflow_name: str = "Onboarding",
    **rule_fields,
):
    """Active workflow with one rule and one attached template."""
    wf = await services.registry.create_workflow(
        "org1", project_id, workflow_name, None, True, "admin"
    )
    fields = {
        "name": "Follow up",
        "resource_type": "task",
        "to_state": "completed",
        "task_type_id": "5",
    }
    fields.update(rule_fields)
    rule = await services.registry.create_rule(
        wf.id, "org1", project_id, RuleCreate(**fields)
    )
    tpl = await services.registry.create_task_template(
        "org1",
        None,
        TaskTemplateCreate(
            name="Review {{origin}}",
            description="{{user}} finished {{origin}} in {{project}}",
            type_id="review",
            priority=2,
        ),
        "admin",
    )
    await services.registry.attach_template(rule.id, tpl.id, "org1", project_id)
    return wf, rule


async def _completed_task(services: Services, title: str = "Write docs", card_id=None):
    task = await services.lifecycle.create_task(
        "org1", "p1", title, "5", "admin", card_id=card_id
    )
    await services.lifecycle.claim_task("org1", task.id, "u5", 1)
    completed = await services.lifecycle.complete_task("org1", task.id, "u5", 2)
    return StateChangeEvent.for_task(completed, from_state="claimed")


async def _ledger_rows(db_session, rule_id: str) -> int:
    return await db_session.scalar(
        select(func.count()).select_from(RuleExecution).where(
            RuleExecution.rule_id == rule_id
        )
    )


class TestEvaluateRule:
    async def test_applies_once_then_idempotent(
        self, services: Services, db_session
    ) -> None:
        _wf, rule = await _rule_with_template(services)
        event = await _completed_task(services)

        first = await services.engine.evaluate_rule(rule, event, USER)

        assert first.outcome is RuleOutcome.APPLIED
        assert len(first.created_tasks) == 1
        created = first.created_tasks[0]
        assert created.title == "Review {{origin}}"
        assert created.description == "Ana finished Write docs in p1"
        assert (created.status, created.version, created.priority) == ("available", 1, 2)
        assert created.created_by == "u5"

        second = await services.engine.evaluate_rule(rule, event, USER)

        assert second.outcome is RuleOutcome.SUPPRESSED
        assert second.reason is SuppressionReason.IDEMPOTENT
        assert await _ledger_rows(db_session, rule.id) == 1

    async def test_deactivated_workflow_suppresses_fresh_origin(
        self, services: Services
    ) -> None:
        wf, rule = await _rule_with_template(services)
        await services.registry.set_active_cascade(wf.id, "org1", "p1", False)
        event = await _completed_task(services)

        result = await services.engine.evaluate_rule(rule, event, USER)

        assert result.reason is SuppressionReason.INACTIVE
        assert result.created_tasks == ()

    async def test_earlier_transition_does_not_block_later_match(
        self, services: Services, db_session
    ) -> None:
        """A claim seen by a completion rule leaves the task free to fire on completion."""
        _wf, rule = await _rule_with_template(services)
        task = await services.lifecycle.create_task("org1", "p1", "Write docs", "5", "admin")
        claimed = await services.lifecycle.claim_task("org1", task.id, "u5", 1)

        early = await services.engine.evaluate_rule(
            rule, StateChangeEvent.for_task(claimed, from_state="available"), USER
        )

        assert early.reason is SuppressionReason.NOT_MATCHING
        assert await _ledger_rows(db_session, rule.id) == 0

        completed = await services.lifecycle.complete_task("org1", task.id, "u5", 2)
        result = await services.engine.evaluate_rule(
            rule, StateChangeEvent.for_task(completed, from_state="claimed"), USER
        )

        assert result.outcome is RuleOutcome.APPLIED
        assert len(result.created_tasks) == 1
        assert await _ledger_rows(db_session, rule.id) == 1

    async def test_origin_seen_while_inactive_fires_after_reactivation(
        self, services: Services, db_session
    ) -> None:
        wf, rule = await _rule_with_template(services)
        await services.registry.set_active_cascade(wf.id, "org1", "p1", False)
        event = await _completed_task(services)

        off = await services.engine.evaluate_rule(rule, event, USER)

        assert off.reason is SuppressionReason.INACTIVE
        assert await _ledger_rows(db_session, rule.id) == 0

        await services.registry.set_active_cascade(wf.id, "org1", "p1", True)
        on = await services.engine.evaluate_rule(rule, event, USER)

        assert on.outcome is RuleOutcome.APPLIED
        assert len(on.created_tasks) == 1

    async def test_suppression_is_recorded_in_ledger(self, services: Services) -> None:
        _wf, rule = await _rule_with_template(services)
        event = await _completed_task(services)

        result = await services.engine.evaluate_rule(rule, event, None)

        assert result.reason is SuppressionReason.NOT_USER_TRIGGERED
        rows = await services.registry.list_rule_executions(rule.id, "org1", "p1")
        assert [(r.outcome, r.suppression_reason, r.user_id) for r in rows] == [
            ("suppressed", "not_user_triggered", None)
        ]

    async def test_failed_instantiation_rolls_back_ledger_row(
        self, services: Services, db_session
    ) -> None:
        """The applied row and the tasks are written together or not at all."""
        _wf, rule = await _rule_with_template(services)
        completed = await _completed_task(services)
        # Tasks would join a card that does not exist (foreign key violation).
        event = StateChangeEvent(
            org_id=completed.org_id,
            project_id=completed.project_id,
            origin_type=completed.origin_type,
            origin_id=completed.origin_id,
            to_state=completed.to_state,
            task_type_id=completed.task_type_id,
            card_id="missing-card",
        )
        tasks_before = await db_session.scalar(select(func.count()).select_from(Task))

        with pytest.raises(RuleEvaluationException):
            await services.engine.evaluate_rule(rule, event, USER)

        assert await _ledger_rows(db_session, rule.id) == 0
        assert await db_session.scalar(select(func.count()).select_from(Task)) == tasks_before


class TestProcessStateChange:
    async def test_project_rules_run_before_org_wide_rules(
        self, services: Services
    ) -> None:
        _org_wf, org_rule = await _rule_with_template(
            services, project_id=None, workflow_name="Org"
        )
        _proj_wf, proj_rule = await _rule_with_template(
            services, project_id="p1", workflow_name="Project"
        )
        event = await _completed_task(services)

        evaluations = await services.engine.process_state_change(event, USER)

        assert [e.rule_id for e in evaluations] == [proj_rule.id, org_rule.id]
        assert all(e.is_applied for e in evaluations)

    async def test_other_task_type_and_other_project_do_not_match(
        self, services: Services
    ) -> None:
        await _rule_with_template(services, task_type_id="9")
        await _rule_with_template(services, project_id="p2", workflow_name="Elsewhere")
        event = await _completed_task(services)

        assert await services.engine.process_state_change(event, USER) == []

    async def test_card_rule_fires_when_card_closes(self, services: Services) -> None:
        _wf, rule = await _rule_with_template(
            services,
            resource_type="card",
            to_state="cerrada",
            task_type_id=None,
            user_triggered_only=False,
        )
        card = await services.cards.create_card("org1", "p1", "Launch", "admin")
        await _completed_task(services, card_id=card.id)
        closed = await services.cards.get_card(card.id, "org1")
        assert closed.status.value == "cerrada"

        evaluations = await services.engine.process_state_change(
            StateChangeEvent.for_card(closed, from_state="en_curso")
        )

        assert [e.rule_id for e in evaluations] == [rule.id]
        new_task = evaluations[0].created_tasks[0]
        assert new_task.card_id == card.id
        # System transition: credited to the workflow creator, {{user}} is "system".
        assert new_task.created_by == "admin"
        assert new_task.description == "system finished Launch in p1"
        reopened = await services.cards.get_card(card.id, "org1")
        assert reopened.status.value == "en_curso"
        assert reopened.task_count == 2


class TestMetrics:
    async def test_rule_and_workflow_metrics(self, services: Services) -> None:
        wf, rule = await _rule_with_template(services)
        idle = await services.registry.create_rule(
            wf.id,
            "org1",
            "p1",
            RuleCreate(name="Idle", resource_type="task", to_state="claimed"),
        )
        applied_event = await _completed_task(services, "First")
        system_event = await _completed_task(services, "Second")
        await services.engine.evaluate_rule(rule, applied_event, USER)
        await services.engine.evaluate_rule(rule, applied_event, USER)
        await services.engine.evaluate_rule(rule, system_event, None)

        metrics = await services.registry.rule_metrics(rule.id, "org1", "p1")

        assert (metrics.evaluated_count, metrics.applied_count, metrics.suppressed_count) == (
            2,
            1,
            1,
        )
        assert metrics.suppression_breakdown == {"not_user_triggered": 1}
        assert await services.registry.count_rule_executions(rule.id, "org1", "p1") == 2

        totals = await services.registry.workflow_metrics(wf.id, "org1", "p1")

        assert totals.evaluated_count == 2
        by_rule = {r.rule_id: r for r in totals.rules}
        assert by_rule[idle.id].evaluated_count == 0
        assert by_rule[rule.id].applied_count == 1
