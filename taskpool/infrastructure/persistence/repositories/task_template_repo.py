"""Task template repository, including rule ⇄ template links."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.workflow import RuleTemplateResult, TaskTemplateResult
from taskpool.infrastructure.persistence.models.workflow import (
    RuleTemplate,
    TaskTemplate,
)
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.shared.utils import ensure_utc

if TYPE_CHECKING:
    from taskpool.schemas.workflow import TaskTemplateCreate


def _to_result(t: Any) -> TaskTemplateResult:
    """Map TaskTemplate ORM (or RETURNING row) to TaskTemplateResult DTO."""
    return TaskTemplateResult(
        id=t.id,
        org_id=t.org_id,
        project_id=t.project_id,
        name=t.name,
        description=t.description,
        type_id=t.type_id,
        priority=t.priority,
        created_by=t.created_by,
        created_at=ensure_utc(t.created_at),
    )


class TaskTemplateRepository(BaseRepository[TaskTemplate]):
    """Task template repository. Implements ITaskTemplateRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, TaskTemplate)

    async def get_template(
        self, template_id: str, org_id: str
    ) -> TaskTemplateResult | None:
        result = await self.db.execute(
            select(TaskTemplate)
            .where(TaskTemplate.id == template_id, TaskTemplate.org_id == org_id)
            .execution_options(populate_existing=True)
        )
        template = result.scalar_one_or_none()
        return _to_result(template) if template else None

    async def list_templates(
        self, org_id: str, project_id: str | None
    ) -> list[TaskTemplateResult]:
        """Org-wide templates, plus the project's own when project_id is given."""
        scope = TaskTemplate.project_id.is_(None)
        if project_id is not None:
            scope = scope | (TaskTemplate.project_id == project_id)
        result = await self.db.execute(
            select(TaskTemplate)
            .where(TaskTemplate.org_id == org_id, scope)
            .order_by(TaskTemplate.name.asc(), TaskTemplate.id.asc())
            .execution_options(populate_existing=True)
        )
        return [_to_result(t) for t in result.scalars().all()]

    async def create_template(
        self,
        org_id: str,
        project_id: str | None,
        data: TaskTemplateCreate,
        created_by: str,
    ) -> TaskTemplateResult:
        template = TaskTemplate(
            org_id=org_id,
            project_id=project_id,
            name=data.name,
            description=data.description,
            type_id=data.type_id,
            priority=data.priority,
            created_by=created_by,
        )
        created = await self.create(template)
        return _to_result(created)

    async def update_template(
        self, template_id: str, org_id: str, changes: dict[str, Any]
    ) -> TaskTemplateResult | None:
        if not changes:
            return await self.get_template(template_id, org_id)
        result = await self.db.execute(
            update(TaskTemplate)
            .where(TaskTemplate.id == template_id, TaskTemplate.org_id == org_id)
            .values(**changes)
            .returning(*TaskTemplate.__table__.c)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        return _to_result(row) if row else None

    async def delete_template(self, template_id: str, org_id: str) -> bool:
        result = await self.db.execute(
            delete(TaskTemplate)
            .where(TaskTemplate.id == template_id, TaskTemplate.org_id == org_id)
            .returning(TaskTemplate.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    async def _set_order(
        self, rule_id: str, template_id: str, execution_order: int
    ) -> bool:
        result = await self.db.execute(
            update(RuleTemplate)
            .where(
                RuleTemplate.rule_id == rule_id,
                RuleTemplate.template_id == template_id,
            )
            .values(execution_order=execution_order)
            .returning(RuleTemplate.rule_id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    async def attach(
        self, rule_id: str, template_id: str, execution_order: int
    ) -> None:
        """Link template to rule; re-attaching only updates the execution order."""
        if await self._set_order(rule_id, template_id, execution_order):
            return
        try:
            async with self.db.begin_nested():
                self.db.add(
                    RuleTemplate(
                        rule_id=rule_id,
                        template_id=template_id,
                        execution_order=execution_order,
                    )
                )
                await self.db.flush()
        except IntegrityError:
            # A concurrent attach inserted the link first.
            if not await self._set_order(rule_id, template_id, execution_order):
                raise

    async def detach(self, rule_id: str, template_id: str) -> bool:
        result = await self.db.execute(
            delete(RuleTemplate)
            .where(
                RuleTemplate.rule_id == rule_id,
                RuleTemplate.template_id == template_id,
            )
            .returning(RuleTemplate.rule_id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    async def list_for_rule(self, rule_id: str) -> list[RuleTemplateResult]:
        """Templates attached to the rule by (execution_order, template id)."""
        result = await self.db.execute(
            select(RuleTemplate.execution_order, TaskTemplate)
            .join(TaskTemplate, TaskTemplate.id == RuleTemplate.template_id)
            .where(RuleTemplate.rule_id == rule_id)
            .order_by(RuleTemplate.execution_order.asc(), TaskTemplate.id.asc())
            .execution_options(populate_existing=True)
        )
        return [
            RuleTemplateResult(
                rule_id=rule_id,
                template=_to_result(row.TaskTemplate),
                execution_order=row.execution_order,
            )
            for row in result.all()
        ]
