"""Workflow registry: workflows, rules, task templates and the rule ledger views.

Workflows are scoped to (org, project-or-null) and addressed in exactly that
scope. Rules and ledger queries are reached through their workflow's scope.
The active flag cascades from a workflow to all of its rules, and a rule
created or re-enabled under an inactive workflow is stored inactive.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.workflow import (
    RuleExecutionResult,
    RuleMetrics,
    RuleResult,
    RuleTemplateResult,
    TaskTemplateResult,
    WorkflowResult,
    WorkflowRuleMetrics,
)
from taskpool.application.interfaces.repositories import (
    IRuleExecutionRepository,
    IRuleRepository,
    ITaskTemplateRepository,
    IWorkflowRepository,
)
from taskpool.core.constants import DEFAULT_PAGE_SIZE
from taskpool.domain.entities.workflow import TaskTemplateEntity
from taskpool.domain.enums import ResourceType
from taskpool.domain.exceptions import (
    ResourceNotFoundException,
    ValidationException,
    WorkflowAlreadyExistsException,
)
from taskpool.infrastructure.exceptions import translate_storage_errors
from taskpool.schemas.workflow import (
    RuleCreate,
    RuleUpdate,
    TaskTemplateCreate,
    TaskTemplateUpdate,
    WorkflowCreate,
    WorkflowUpdate,
)
from taskpool.shared.telemetry.logging import get_logger
from taskpool.shared.telemetry.tracing import traced

logger = get_logger(__name__)


M = TypeVar("M", bound=BaseModel)


def _validated(model: type[M], **data: Any) -> M:
    """Build a command schema; pydantic errors become ValidationException."""
    try:
        return model(**data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ValidationException(first.get("msg", str(e)), field=field) from e


def _check_window(since: datetime | None, until: datetime | None) -> None:
    if since is not None and until is not None and since >= until:
        raise ValidationException("since must be before until", field="since")


def _check_page(limit: int, offset: int) -> None:
    if limit < 1:
        raise ValidationException("limit must be >= 1", field="limit")
    if offset < 0:
        raise ValidationException("offset must be >= 0", field="offset")


class WorkflowRegistryService:
    """CRUD for workflows, rules and task templates, plus ledger metrics."""

    def __init__(
        self,
        db: AsyncSession,
        workflow_repo: IWorkflowRepository,
        rule_repo: IRuleRepository,
        template_repo: ITaskTemplateRepository,
        execution_repo: IRuleExecutionRepository,
    ) -> None:
        self.db = db
        self.workflow_repo = workflow_repo
        self.rule_repo = rule_repo
        self.template_repo = template_repo
        self.execution_repo = execution_repo

    # Workflows

    async def _require_workflow(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> WorkflowResult:
        workflow = await self.workflow_repo.get_in_scope(workflow_id, org_id, project_id)
        if workflow is None:
            raise ResourceNotFoundException("workflow", workflow_id)
        return workflow

    async def _ensure_name_free(
        self,
        org_id: str,
        project_id: str | None,
        name: str,
        workflow_id: str | None = None,
    ) -> None:
        existing = await self.workflow_repo.get_by_name(org_id, project_id, name)
        if existing is not None and existing.id != workflow_id:
            raise WorkflowAlreadyExistsException(name, org_id, project_id)

    @traced("workflow_registry.create_workflow")
    async def create_workflow(
        self,
        org_id: str,
        project_id: str | None,
        name: str,
        description: str | None,
        active: bool,
        created_by: str,
    ) -> WorkflowResult:
        """Create a workflow in (org, project-or-null).

        Raises:
            ValidationException: Empty or over-long name.
            WorkflowAlreadyExistsException: Name taken in this scope.
        """
        data = _validated(
            WorkflowCreate, name=name, description=description, active=active
        )
        with translate_storage_errors("create_workflow"):
            await self._ensure_name_free(org_id, project_id, data.name)
            try:
                async with self.db.begin_nested():
                    workflow = await self.workflow_repo.create_workflow(
                        org_id,
                        project_id,
                        data.name,
                        data.description,
                        data.active,
                        created_by,
                    )
            except IntegrityError as e:
                # Lost a race on the scope's unique name index.
                raise WorkflowAlreadyExistsException(data.name, org_id, project_id) from e
        logger.info(
            "Workflow created: id=%s org=%s project=%s", workflow.id, org_id, project_id
        )
        return workflow

    async def get_workflow(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> WorkflowResult:
        with translate_storage_errors("get_workflow"):
            return await self._require_workflow(workflow_id, org_id, project_id)

    async def list_workflows(
        self, org_id: str, project_id: str | None
    ) -> list[WorkflowResult]:
        """Return the workflows of exactly this scope, with rule counts, by name."""
        with translate_storage_errors("list_workflows"):
            return await self.workflow_repo.list_workflows(org_id, project_id)

    @traced("workflow_registry.update_workflow")
    async def update_workflow(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        data: WorkflowUpdate,
    ) -> WorkflowResult:
        """Update a workflow; fields not given keep the stored value.

        description=None clears the description. A given active flag
        cascades to the rules as in set_active_cascade.

        Raises:
            ResourceNotFoundException: No such workflow in this scope.
            WorkflowAlreadyExistsException: The new name is taken in this scope.
        """
        changes = data.changes()
        active = changes.pop("active", None)
        name = changes.get("name")
        with translate_storage_errors("update_workflow"):
            await self._require_workflow(workflow_id, org_id, project_id)
            if name is not None:
                await self._ensure_name_free(org_id, project_id, name, workflow_id)
            try:
                async with self.db.begin_nested():
                    updated = await self.workflow_repo.update_workflow(
                        workflow_id, org_id, project_id, changes
                    )
                    if updated is None:
                        raise ResourceNotFoundException("workflow", workflow_id)
                    if active is not None:
                        await self.workflow_repo.set_active_cascade(
                            workflow_id, org_id, project_id, active
                        )
            except IntegrityError as e:
                raise WorkflowAlreadyExistsException(
                    name or "", org_id, project_id
                ) from e
            return await self._require_workflow(workflow_id, org_id, project_id)

    @traced("workflow_registry.set_active_cascade")
    async def set_active_cascade(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        active: bool,
    ) -> None:
        """Set the workflow's active flag and every child rule's flag together.

        Raises:
            ResourceNotFoundException: No such workflow in this scope.
        """
        with translate_storage_errors("set_active_cascade"):
            async with self.db.begin_nested():
                found = await self.workflow_repo.set_active_cascade(
                    workflow_id, org_id, project_id, active
                )
        if not found:
            raise ResourceNotFoundException("workflow", workflow_id)
        logger.info(
            "Workflow %s %s (rules cascaded)",
            workflow_id,
            "activated" if active else "deactivated",
        )

    @traced("workflow_registry.delete_workflow")
    async def delete_workflow(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> None:
        """Delete the workflow and all of its rules.

        Raises:
            ResourceNotFoundException: No such workflow in this scope.
        """
        with translate_storage_errors("delete_workflow"):
            deleted = await self.workflow_repo.delete_workflow(
                workflow_id, org_id, project_id
            )
        if not deleted:
            raise ResourceNotFoundException("workflow", workflow_id)
        logger.info("Workflow deleted: id=%s", workflow_id)

    # Rules

    async def _require_rule(
        self, rule_id: str, org_id: str, project_id: str | None
    ) -> tuple[RuleResult, WorkflowResult]:
        pair = await self.rule_repo.get_rule_with_workflow(rule_id)
        if pair is None:
            raise ResourceNotFoundException("rule", rule_id)
        _rule, workflow = pair
        if workflow.org_id != org_id or workflow.project_id != project_id:
            raise ResourceNotFoundException("rule", rule_id)
        return pair

    async def create_rule(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        data: RuleCreate,
    ) -> RuleResult:
        """Add a rule to the workflow; stored inactive while the workflow is inactive."""
        with translate_storage_errors("create_rule"):
            workflow = await self._require_workflow(workflow_id, org_id, project_id)
            active = data.active and workflow.active
            if data.active and not active:
                logger.debug(
                    "Rule stored inactive: workflow %s is inactive", workflow_id
                )
            return await self.rule_repo.create_rule(workflow_id, data, active)

    async def get_rule(
        self, rule_id: str, org_id: str, project_id: str | None
    ) -> RuleResult:
        with translate_storage_errors("get_rule"):
            rule, _workflow = await self._require_rule(rule_id, org_id, project_id)
        return rule

    async def list_rules(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> list[RuleResult]:
        with translate_storage_errors("list_rules"):
            await self._require_workflow(workflow_id, org_id, project_id)
            return await self.rule_repo.list_rules(workflow_id)

    async def update_rule(
        self,
        rule_id: str,
        org_id: str,
        project_id: str | None,
        data: RuleUpdate,
    ) -> RuleResult:
        """Apply a partial rule update.

        The merged trigger is validated against the stored values: to_state
        must be a status of the resulting resource type, and a card rule
        loses its task type filter.

        Raises:
            ResourceNotFoundException: No such rule in this scope.
            ValidationException: The merged trigger is invalid.
        """
        with translate_storage_errors("update_rule"):
            current, workflow = await self._require_rule(rule_id, org_id, project_id)
            changes = data.changes()
            resource_type = changes.get("resource_type", current.resource_type)
            to_state = changes.get("to_state", current.to_state)
            if to_state not in ResourceType(resource_type).state_values():
                raise ValidationException(
                    f"to_state '{to_state}' is not a {resource_type} status",
                    field="to_state",
                )
            if resource_type == ResourceType.CARD.value:
                changes["task_type_id"] = None
            if changes.get("active") and not workflow.active:
                changes["active"] = False
            updated = await self.rule_repo.update_rule(rule_id, changes)
        if updated is None:
            raise ResourceNotFoundException("rule", rule_id)
        return updated

    async def delete_rule(
        self, rule_id: str, org_id: str, project_id: str | None
    ) -> None:
        """Delete the rule with its template links and ledger rows."""
        with translate_storage_errors("delete_rule"):
            await self._require_rule(rule_id, org_id, project_id)
            deleted = await self.rule_repo.delete_rule(rule_id)
        if not deleted:
            raise ResourceNotFoundException("rule", rule_id)

    # Task templates

    async def _require_template(
        self, template_id: str, org_id: str
    ) -> TaskTemplateResult:
        template = await self.template_repo.get_template(template_id, org_id)
        if template is None:
            raise ResourceNotFoundException("task_template", template_id)
        return template

    async def create_task_template(
        self,
        org_id: str,
        project_id: str | None,
        data: TaskTemplateCreate,
        created_by: str,
    ) -> TaskTemplateResult:
        with translate_storage_errors("create_task_template"):
            return await self.template_repo.create_template(
                org_id, project_id, data, created_by
            )

    async def get_task_template(
        self, template_id: str, org_id: str
    ) -> TaskTemplateResult:
        with translate_storage_errors("get_task_template"):
            return await self._require_template(template_id, org_id)

    async def list_task_templates(
        self, org_id: str, project_id: str | None
    ) -> list[TaskTemplateResult]:
        """Org-wide templates plus, for a project, the project's own."""
        with translate_storage_errors("list_task_templates"):
            return await self.template_repo.list_templates(org_id, project_id)

    async def update_task_template(
        self, template_id: str, org_id: str, data: TaskTemplateUpdate
    ) -> TaskTemplateResult:
        with translate_storage_errors("update_task_template"):
            updated = await self.template_repo.update_template(
                template_id, org_id, data.changes()
            )
        if updated is None:
            raise ResourceNotFoundException("task_template", template_id)
        return updated

    async def delete_task_template(self, template_id: str, org_id: str) -> None:
        """Delete the template; rules it was attached to simply lose the link."""
        with translate_storage_errors("delete_task_template"):
            deleted = await self.template_repo.delete_template(template_id, org_id)
        if not deleted:
            raise ResourceNotFoundException("task_template", template_id)

    # Rule <-> template links

    async def attach_template(
        self,
        rule_id: str,
        template_id: str,
        org_id: str,
        project_id: str | None,
        execution_order: int = 0,
    ) -> RuleTemplateResult:
        """Attach a template to a rule, or move an attached one to execution_order.

        Raises:
            ResourceNotFoundException: Rule or template not found in scope.
            ValidationException: Negative order, or the template belongs to
                another project than the rule's workflow.
        """
        if execution_order < 0:
            raise ValidationException(
                "execution_order must be >= 0", field="execution_order"
            )
        with translate_storage_errors("attach_template"):
            _rule, workflow = await self._require_rule(rule_id, org_id, project_id)
            template = await self._require_template(template_id, org_id)
            entity = TaskTemplateEntity(
                id=template.id,
                org_id=template.org_id,
                project_id=template.project_id,
                name=template.name,
                description=template.description,
                type_id=template.type_id,
                priority=template.priority,
            )
            if not entity.available_to(workflow.org_id, workflow.project_id):
                raise ValidationException(
                    "Template is not available in the rule's workflow scope",
                    field="template_id",
                )
            await self.template_repo.attach(rule_id, template_id, execution_order)
        return RuleTemplateResult(
            rule_id=rule_id, template=template, execution_order=execution_order
        )

    async def detach_template(
        self,
        rule_id: str,
        template_id: str,
        org_id: str,
        project_id: str | None,
    ) -> None:
        """Remove the link only; the template itself is kept."""
        with translate_storage_errors("detach_template"):
            await self._require_rule(rule_id, org_id, project_id)
            detached = await self.template_repo.detach(rule_id, template_id)
        if not detached:
            raise ResourceNotFoundException("rule_template", f"{rule_id}:{template_id}")

    async def list_rule_templates(
        self, rule_id: str, org_id: str, project_id: str | None
    ) -> list[RuleTemplateResult]:
        with translate_storage_errors("list_rule_templates"):
            await self._require_rule(rule_id, org_id, project_id)
            return await self.template_repo.list_for_rule(rule_id)

    # Ledger queries

    async def list_rule_executions(
        self,
        rule_id: str,
        org_id: str,
        project_id: str | None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[RuleExecutionResult]:
        """Ledger rows for the rule, newest first; since inclusive, until exclusive."""
        _check_window(since, until)
        _check_page(limit, offset)
        with translate_storage_errors("list_rule_executions"):
            await self._require_rule(rule_id, org_id, project_id)
            return await self.execution_repo.list_for_rule(
                rule_id, since, until, limit, offset
            )

    async def count_rule_executions(
        self,
        rule_id: str,
        org_id: str,
        project_id: str | None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        _check_window(since, until)
        with translate_storage_errors("count_rule_executions"):
            await self._require_rule(rule_id, org_id, project_id)
            return await self.execution_repo.count_for_rule(rule_id, since, until)

    async def rule_metrics(
        self,
        rule_id: str,
        org_id: str,
        project_id: str | None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> RuleMetrics:
        """Applied and suppressed totals for one rule, with suppressions by reason."""
        _check_window(since, until)
        with translate_storage_errors("rule_metrics"):
            await self._require_rule(rule_id, org_id, project_id)
            metrics = await self.execution_repo.rule_metrics(rule_id, since, until)
        if metrics is None:
            raise ResourceNotFoundException("rule", rule_id)
        return metrics

    async def workflow_metrics(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> WorkflowRuleMetrics:
        """Per-rule totals for every rule of the workflow (idle rules report zeros)."""
        _check_window(since, until)
        with translate_storage_errors("workflow_metrics"):
            await self._require_workflow(workflow_id, org_id, project_id)
            return await self.execution_repo.workflow_metrics(workflow_id, since, until)
