"""Integration tests: workflow registry against the real repositories (SQLite)."""

import pytest
from sqlalchemy import func, select

from taskpool.core.composition import Services
from taskpool.domain.exceptions import (
    ResourceNotFoundException,
    ValidationException,
    WorkflowAlreadyExistsException,
)
from taskpool.infrastructure.persistence.models.workflow import Rule
from taskpool.schemas.workflow import (
    RuleCreate,
    RuleUpdate,
    TaskTemplateCreate,
    TaskTemplateUpdate,
    WorkflowUpdate,
)


def _rule_create(name: str = "Follow up", **overrides) -> RuleCreate:
    data = {"name": name, "resource_type": "task", "to_state": "completed"}
    data.update(overrides)
    return RuleCreate(**data)


class TestWorkflows:
    async def test_duplicate_org_wide_name_already_exists(
        self, services: Services
    ) -> None:
        await services.registry.create_workflow(
            "org1", None, "Onboarding", None, True, "admin"
        )

        with pytest.raises(WorkflowAlreadyExistsException):
            await services.registry.create_workflow(
                "org1", None, "Onboarding", None, True, "admin"
            )

    async def test_same_name_allowed_in_other_scopes(self, services: Services) -> None:
        await services.registry.create_workflow("org1", None, "Onboarding", None, True, "a")
        await services.registry.create_workflow("org1", "p1", "Onboarding", None, True, "a")
        await services.registry.create_workflow("org1", "p2", "Onboarding", None, True, "a")
        await services.registry.create_workflow("org2", None, "Onboarding", None, True, "a")

        with pytest.raises(WorkflowAlreadyExistsException):
            await services.registry.create_workflow(
                "org1", "p1", "Onboarding", None, False, "a"
            )

    async def test_workflow_addressed_only_in_its_scope(self, services: Services) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")

        assert (await services.registry.get_workflow(wf.id, "org1", "p1")).name == "W"
        with pytest.raises(ResourceNotFoundException):
            await services.registry.get_workflow(wf.id, "org1", None)

    async def test_list_reports_rule_counts(self, services: Services) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "B", None, True, "a")
        await services.registry.create_workflow("org1", "p1", "A", None, True, "a")
        await services.registry.create_rule(wf.id, "org1", "p1", _rule_create("r1"))
        await services.registry.create_rule(wf.id, "org1", "p1", _rule_create("r2"))

        listed = await services.registry.list_workflows("org1", "p1")

        assert [(w.name, w.rule_count) for w in listed] == [("A", 0), ("B", 2)]

    async def test_deactivate_cascades_to_rules_and_back(
        self, services: Services
    ) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")
        r1 = await services.registry.create_rule(wf.id, "org1", "p1", _rule_create("r1"))
        r2 = await services.registry.create_rule(wf.id, "org1", "p1", _rule_create("r2"))

        await services.registry.set_active_cascade(wf.id, "org1", "p1", False)

        rules = await services.registry.list_rules(wf.id, "org1", "p1")
        assert {r.id for r in rules} == {r1.id, r2.id}
        assert not any(r.active for r in rules)
        assert not (await services.registry.get_workflow(wf.id, "org1", "p1")).active

        await services.registry.set_active_cascade(wf.id, "org1", "p1", True)

        assert all(r.active for r in await services.registry.list_rules(wf.id, "org1", "p1"))

    async def test_update_workflow_active_cascades(self, services: Services) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")
        await services.registry.create_rule(wf.id, "org1", "p1", _rule_create())

        updated = await services.registry.update_workflow(
            wf.id, "org1", "p1", WorkflowUpdate(name="Renamed", active=False)
        )

        assert (updated.name, updated.active) == ("Renamed", False)
        assert not any(
            r.active for r in await services.registry.list_rules(wf.id, "org1", "p1")
        )

    async def test_rule_created_under_inactive_workflow_is_inactive(
        self, services: Services
    ) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, False, "a")

        rule = await services.registry.create_rule(wf.id, "org1", "p1", _rule_create())
        assert rule.active is False

        reenabled = await services.registry.update_rule(
            rule.id, "org1", "p1", RuleUpdate(active=True)
        )
        assert reenabled.active is False

    async def test_delete_workflow_removes_its_rules(
        self, services: Services, db_session
    ) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")
        rule = await services.registry.create_rule(wf.id, "org1", "p1", _rule_create())

        await services.registry.delete_workflow(wf.id, "org1", "p1")

        remaining = await db_session.scalar(
            select(func.count()).select_from(Rule).where(Rule.workflow_id == wf.id)
        )
        assert remaining == 0
        with pytest.raises(ResourceNotFoundException):
            await services.registry.get_rule(rule.id, "org1", "p1")
        with pytest.raises(ResourceNotFoundException):
            await services.registry.delete_workflow(wf.id, "org1", "p1")


class TestRulesAndTemplates:
    async def test_update_rule_to_card_trigger(self, services: Services) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")
        rule = await services.registry.create_rule(
            wf.id, "org1", "p1", _rule_create(task_type_id="bug")
        )

        updated = await services.registry.update_rule(
            rule.id, "org1", "p1", RuleUpdate(resource_type="card", to_state="cerrada")
        )

        assert (updated.resource_type, updated.to_state) == ("card", "cerrada")
        assert updated.task_type_id is None

    async def test_optional_fields_can_be_cleared(self, services: Services) -> None:
        wf = await services.registry.create_workflow(
            "org1", "p1", "W", "Old notes", True, "a"
        )
        rule = await services.registry.create_rule(
            wf.id, "org1", "p1", _rule_create(goal="Ship it", task_type_id="bug")
        )
        tpl = await services.registry.create_task_template(
            "org1",
            "p1",
            TaskTemplateCreate(name="Review", description="Check {{origin}}", type_id="r"),
            "a",
        )

        cleared_wf = await services.registry.update_workflow(
            wf.id, "org1", "p1", WorkflowUpdate(description=None)
        )
        cleared_rule = await services.registry.update_rule(
            rule.id, "org1", "p1", RuleUpdate(goal=None, task_type_id=None)
        )
        cleared_tpl = await services.registry.update_task_template(
            tpl.id, "org1", TaskTemplateUpdate(description=None)
        )

        assert (cleared_wf.name, cleared_wf.description) == ("W", None)
        assert (cleared_rule.name, cleared_rule.goal, cleared_rule.task_type_id) == (
            "Follow up",
            None,
            None,
        )
        assert (cleared_tpl.name, cleared_tpl.description) == ("Review", None)

    async def test_update_rule_rejects_state_of_other_type(
        self, services: Services
    ) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")
        rule = await services.registry.create_rule(wf.id, "org1", "p1", _rule_create())

        with pytest.raises(ValidationException):
            await services.registry.update_rule(
                rule.id, "org1", "p1", RuleUpdate(to_state="en_curso")
            )

    async def test_attach_orders_and_reattach_moves(self, services: Services) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")
        rule = await services.registry.create_rule(wf.id, "org1", "p1", _rule_create())
        review = await services.registry.create_task_template(
            "org1", None, TaskTemplateCreate(name="Review", type_id="review"), "a"
        )
        publish = await services.registry.create_task_template(
            "org1", "p1", TaskTemplateCreate(name="Publish", type_id="ops"), "a"
        )

        await services.registry.attach_template(rule.id, review.id, "org1", "p1", 1)
        await services.registry.attach_template(rule.id, publish.id, "org1", "p1", 2)
        names = [
            link.template.name
            for link in await services.registry.list_rule_templates(rule.id, "org1", "p1")
        ]
        assert names == ["Review", "Publish"]

        await services.registry.attach_template(rule.id, publish.id, "org1", "p1", 0)
        links = await services.registry.list_rule_templates(rule.id, "org1", "p1")
        assert [(link.template.name, link.execution_order) for link in links] == [
            ("Publish", 0),
            ("Review", 1),
        ]

    async def test_detach_keeps_template(self, services: Services) -> None:
        wf = await services.registry.create_workflow("org1", "p1", "W", None, True, "a")
        rule = await services.registry.create_rule(wf.id, "org1", "p1", _rule_create())
        tpl = await services.registry.create_task_template(
            "org1", None, TaskTemplateCreate(name="Review", type_id="review"), "a"
        )
        await services.registry.attach_template(rule.id, tpl.id, "org1", "p1")

        await services.registry.detach_template(rule.id, tpl.id, "org1", "p1")

        assert await services.registry.list_rule_templates(rule.id, "org1", "p1") == []
        assert (await services.registry.get_task_template(tpl.id, "org1")).name == "Review"
        with pytest.raises(ResourceNotFoundException):
            await services.registry.detach_template(rule.id, tpl.id, "org1", "p1")

    async def test_template_lists_include_org_wide(self, services: Services) -> None:
        await services.registry.create_task_template(
            "org1", None, TaskTemplateCreate(name="Org", type_id="t"), "a"
        )
        await services.registry.create_task_template(
            "org1", "p1", TaskTemplateCreate(name="P1", type_id="t"), "a"
        )
        await services.registry.create_task_template(
            "org1", "p2", TaskTemplateCreate(name="P2", type_id="t"), "a"
        )

        names = [t.name for t in await services.registry.list_task_templates("org1", "p1")]

        assert names == ["Org", "P1"]
