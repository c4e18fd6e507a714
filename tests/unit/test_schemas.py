"""Tests for workflow command schemas (pydantic validation)."""

import pytest
from pydantic import ValidationError

from taskpool.schemas.workflow import (
    RuleCreate,
    RuleUpdate,
    TaskTemplateCreate,
    TaskTemplateUpdate,
    WorkflowCreate,
    WorkflowUpdate,
)


class TestRuleCreate:
    def test_defaults(self) -> None:
        rule = RuleCreate(name="Follow up", resource_type="task", to_state="completed")
        assert rule.active is True
        assert rule.user_triggered_only is True
        assert rule.task_type_id is None

    def test_to_state_must_belong_to_resource_type(self) -> None:
        with pytest.raises(ValidationError, match="to_state must be one of"):
            RuleCreate(name="R", resource_type="task", to_state="cerrada")
        with pytest.raises(ValidationError):
            RuleCreate(name="R", resource_type="card", to_state="completed")

    def test_unknown_resource_type(self) -> None:
        with pytest.raises(ValidationError):
            RuleCreate(name="R", resource_type="project", to_state="completed")  # type: ignore[arg-type]

    def test_card_rule_drops_task_type(self) -> None:
        rule = RuleCreate(
            name="R", resource_type="card", to_state="cerrada", task_type_id="bug"
        )
        assert rule.task_type_id is None

    def test_task_rule_keeps_task_type(self) -> None:
        rule = RuleCreate(
            name="R", resource_type="task", to_state="completed", task_type_id="bug"
        )
        assert rule.task_type_id == "bug"

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RuleCreate(name="", resource_type="task", to_state="completed")


class TestRuleUpdate:
    def test_partial_update_without_type_is_not_checked_here(self) -> None:
        assert RuleUpdate(to_state="cerrada").model_dump(exclude_none=True) == {
            "to_state": "cerrada"
        }

    def test_type_and_state_checked_together(self) -> None:
        with pytest.raises(ValidationError):
            RuleUpdate(resource_type="card", to_state="claimed")


class TestWorkflowAndTemplate:
    def test_workflow_defaults_inactive(self) -> None:
        assert WorkflowCreate(name="Onboarding").active is False

    def test_workflow_name_length(self) -> None:
        with pytest.raises(ValidationError):
            WorkflowCreate(name="x" * 256)

    @pytest.mark.parametrize("priority", [0, 6])
    def test_template_priority_bounds(self, priority: int) -> None:
        with pytest.raises(ValidationError):
            TaskTemplateCreate(name="Review", type_id="review", priority=priority)

    def test_template_default_priority(self) -> None:
        assert TaskTemplateCreate(name="Review", type_id="review").priority == 3


class TestPartialUpdateChanges:
    def test_only_given_fields(self) -> None:
        assert RuleUpdate(name="Renamed").changes() == {"name": "Renamed"}
        assert RuleUpdate().changes() == {}

    def test_explicit_none_clears_nullable_fields(self) -> None:
        assert RuleUpdate(goal=None, task_type_id=None).changes() == {
            "goal": None,
            "task_type_id": None,
        }
        assert WorkflowUpdate(description=None).changes() == {"description": None}
        assert TaskTemplateUpdate(description=None).changes() == {"description": None}

    def test_none_for_required_column_is_ignored(self) -> None:
        assert RuleUpdate(name=None, active=None).changes() == {}
        assert TaskTemplateUpdate(priority=None, type_id=None).changes() == {}
        assert WorkflowUpdate(name=None, active=False).changes() == {"active": False}
