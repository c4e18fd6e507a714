"""Tests for domain entities (TaskEntity, WorkflowEntity, RuleEntity, card status) and enums."""

import pytest

from taskpool.domain.entities.card import derive_card_status
from taskpool.domain.entities.task import TaskEntity
from taskpool.domain.entities.workflow import (
    RuleEntity,
    TaskTemplateEntity,
    WorkflowEntity,
)
from taskpool.domain.enums import CardStatus, ResourceType, TaskAction, TaskStatus
from taskpool.domain.exceptions import (
    TaskConflictException,
    TaskForbiddenException,
    ValidationException,
)
from taskpool.shared.enums import RuleOutcome, SuppressionReason


def _task(
    status: TaskStatus = TaskStatus.AVAILABLE,
    claimed_by: str | None = None,
    version: int = 1,
) -> TaskEntity:
    return TaskEntity(
        id="t1",
        org_id="org1",
        project_id="p1",
        type_id="bug",
        status=status,
        claimed_by=claimed_by,
        version=version,
    )


def _workflow(active: bool = True, project_id: str | None = "p1") -> WorkflowEntity:
    return WorkflowEntity(
        id="w1",
        org_id="org1",
        project_id=project_id,
        name="Onboarding",
        active=active,
        created_by="admin",
    )


def _rule(
    resource_type: ResourceType = ResourceType.TASK,
    to_state: str = "completed",
    active: bool = True,
    task_type_id: str | None = None,
) -> RuleEntity:
    return RuleEntity(
        id="r1",
        workflow_id="w1",
        name="Follow up",
        resource_type=resource_type,
        to_state=to_state,
        active=active,
        task_type_id=task_type_id,
    )


class TestEnums:
    """Status enums and .values() helpers."""

    def test_task_status_values(self) -> None:
        assert TaskStatus.values() == ["available", "claimed", "completed"]

    def test_card_status_values(self) -> None:
        assert CardStatus.values() == ["pendiente", "en_curso", "cerrada"]

    def test_state_values_per_resource_type(self) -> None:
        assert ResourceType.TASK.state_values() == TaskStatus.values()
        assert ResourceType.CARD.state_values() == CardStatus.values()

    def test_suppression_reasons_in_check_order(self) -> None:
        assert SuppressionReason.values() == [
            "inactive",
            "not_matching",
            "not_user_triggered",
            "idempotent",
        ]

    def test_rule_outcome_values(self) -> None:
        assert RuleOutcome.values() == ["applied", "suppressed"]


class TestTaskEntityInvariant:
    """claimed_by is set if and only if status is claimed or completed."""

    def test_available_without_claimant(self) -> None:
        assert _task().claimed_by is None

    def test_claimed_with_claimant(self) -> None:
        _task(TaskStatus.CLAIMED, "u5")
        _task(TaskStatus.COMPLETED, "u5")

    def test_available_with_claimant_rejected(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            _task(TaskStatus.AVAILABLE, "u5")
        assert exc_info.value.details["field"] == "claimed_by"

    def test_claimed_without_claimant_rejected(self) -> None:
        with pytest.raises(ValidationException):
            _task(TaskStatus.CLAIMED, None)

    def test_status_string_coerced(self) -> None:
        task = _task(status="claimed", claimed_by="u5")  # type: ignore[arg-type]
        assert task.status is TaskStatus.CLAIMED

    def test_version_below_one_rejected(self) -> None:
        with pytest.raises(ValidationException):
            _task(version=0)


class TestTaskEntityTransitions:
    """Legal-transition table and failure classification."""

    def test_transition_table(self) -> None:
        assert TaskEntity.source_status(TaskAction.CLAIM) is TaskStatus.AVAILABLE
        assert TaskEntity.target_status(TaskAction.CLAIM) is TaskStatus.CLAIMED
        assert TaskEntity.source_status(TaskAction.RELEASE) is TaskStatus.CLAIMED
        assert TaskEntity.target_status(TaskAction.RELEASE) is TaskStatus.AVAILABLE
        assert TaskEntity.source_status(TaskAction.COMPLETE) is TaskStatus.CLAIMED
        assert TaskEntity.target_status(TaskAction.COMPLETE) is TaskStatus.COMPLETED

    def test_legal_claim_has_no_error(self) -> None:
        assert _task().transition_error(TaskAction.CLAIM, "u5", 1) is None

    def test_claim_on_claimed_task_is_not_available(self) -> None:
        error = _task(TaskStatus.CLAIMED, "u5", 2).transition_error(
            TaskAction.CLAIM, "u7", 2
        )
        assert isinstance(error, TaskConflictException)
        assert error.reason == "not_available"

    def test_stale_version_is_version_mismatch(self) -> None:
        error = _task(version=3).transition_error(TaskAction.CLAIM, "u5", 1)
        assert isinstance(error, TaskConflictException)
        assert error.reason == "version_mismatch"
        assert error.details["current_version"] == 3

    def test_release_by_other_user_is_forbidden(self) -> None:
        """Claimant check comes before status and version checks."""
        error = _task(TaskStatus.CLAIMED, "u5", 2).transition_error(
            TaskAction.RELEASE, "u7", 99
        )
        assert isinstance(error, TaskForbiddenException)

    def test_complete_by_other_user_is_forbidden(self) -> None:
        error = _task(TaskStatus.COMPLETED, "u5", 3).transition_error(
            TaskAction.COMPLETE, "u7", 3
        )
        assert isinstance(error, TaskForbiddenException)

    def test_claim_by_other_user_is_conflict_not_forbidden(self) -> None:
        error = _task(TaskStatus.CLAIMED, "u5", 2).transition_error(
            TaskAction.CLAIM, "u7", 1
        )
        assert isinstance(error, TaskConflictException)

    def test_release_of_available_task_is_invalid_transition(self) -> None:
        error = _task().transition_error(TaskAction.RELEASE, "u5", 1)
        assert isinstance(error, TaskConflictException)
        assert error.reason == "invalid_transition"

    def test_complete_twice_is_invalid_transition(self) -> None:
        error = _task(TaskStatus.COMPLETED, "u5", 3).transition_error(
            TaskAction.COMPLETE, "u5", 3
        )
        assert isinstance(error, TaskConflictException)
        assert error.reason == "invalid_transition"

    def test_classify_failure_on_legal_state_reports_version_mismatch(self) -> None:
        """Re-read state allowing the transition means a concurrent writer won."""
        error = _task().classify_failure(TaskAction.CLAIM, "u5", 1)
        assert isinstance(error, TaskConflictException)
        assert error.reason == "version_mismatch"

    def test_is_claimed_by_other(self) -> None:
        task = _task(TaskStatus.CLAIMED, "u5", 2)
        assert task.is_claimed_by_other("u7")
        assert not task.is_claimed_by_other("u5")
        assert not _task().is_claimed_by_other("u7")


class TestDeriveCardStatus:
    """Card status from task statuses."""

    def test_no_tasks_is_pendiente(self) -> None:
        assert derive_card_status([]) is CardStatus.PENDIENTE

    def test_all_available_is_pendiente(self) -> None:
        assert derive_card_status(["available", "available"]) is CardStatus.PENDIENTE

    def test_all_completed_is_cerrada(self) -> None:
        assert derive_card_status([TaskStatus.COMPLETED]) is CardStatus.CERRADA

    def test_mixed_is_en_curso(self) -> None:
        assert derive_card_status(["available", "completed"]) is CardStatus.EN_CURSO
        assert derive_card_status(["claimed"]) is CardStatus.EN_CURSO


class TestWorkflowEntity:
    def test_project_workflow_covers_only_its_project(self) -> None:
        wf = _workflow(project_id="p1")
        assert wf.covers("org1", "p1")
        assert not wf.covers("org1", "p2")
        assert not wf.covers("org2", "p1")

    def test_org_wide_workflow_covers_every_project(self) -> None:
        wf = _workflow(project_id=None)
        assert wf.is_org_wide
        assert wf.covers("org1", "p1")
        assert wf.covers("org1", "p2")
        assert not wf.covers("org2", "p1")


class TestRuleEntity:
    def test_effective_activation_is_and_of_flags(self) -> None:
        assert _rule(active=True).is_effectively_active(_workflow(active=True))
        assert not _rule(active=True).is_effectively_active(_workflow(active=False))
        assert not _rule(active=False).is_effectively_active(_workflow(active=True))

    def test_to_state_must_belong_to_resource_type(self) -> None:
        with pytest.raises(ValidationException):
            _rule(resource_type=ResourceType.CARD, to_state="completed")
        _rule(resource_type=ResourceType.CARD, to_state="cerrada")

    def test_matches_resource_type_and_state(self) -> None:
        rule = _rule()
        assert rule.matches(ResourceType.TASK, "completed", None)
        assert not rule.matches(ResourceType.TASK, "claimed", None)
        assert not rule.matches(ResourceType.CARD, "completed", None)

    def test_task_type_filter(self) -> None:
        rule = _rule(task_type_id="bug")
        assert rule.matches(ResourceType.TASK, "completed", "bug")
        assert not rule.matches(ResourceType.TASK, "completed", "feature")

    def test_event_without_task_type_skips_filter(self) -> None:
        assert _rule(task_type_id="bug").matches(ResourceType.TASK, "completed", None)

    def test_card_rule_ignores_task_type(self) -> None:
        rule = _rule(ResourceType.CARD, "cerrada", task_type_id="bug")
        assert rule.matches(ResourceType.CARD, "cerrada", "feature")


class TestTaskTemplateEntity:
    def _template(self, project_id: str | None = None, priority: int = 3) -> TaskTemplateEntity:
        return TaskTemplateEntity(
            id="tpl1",
            org_id="org1",
            project_id=project_id,
            name="Review",
            description=None,
            type_id="review",
            priority=priority,  # type: ignore[arg-type]
        )

    def test_priority_out_of_range_is_validation_error(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            self._template(priority=9)
        assert exc_info.value.details["field"] == "priority"

    def test_org_template_available_everywhere_in_org(self) -> None:
        tpl = self._template()
        assert tpl.available_to("org1", None)
        assert tpl.available_to("org1", "p1")
        assert not tpl.available_to("org2", "p1")

    def test_project_template_only_in_its_project(self) -> None:
        tpl = self._template(project_id="p1")
        assert tpl.available_to("org1", "p1")
        assert not tpl.available_to("org1", "p2")
        assert not tpl.available_to("org1", None)
