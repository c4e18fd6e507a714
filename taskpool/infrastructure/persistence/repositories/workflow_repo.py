"""Workflow repository: scoped CRUD and the activation cascade."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.workflow import WorkflowResult
from taskpool.infrastructure.persistence.models.workflow import Rule, Workflow
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.shared.utils import ensure_utc


def workflow_to_result(w: Any, rule_count: int = 0) -> WorkflowResult:
    """Map Workflow ORM (or RETURNING row) to WorkflowResult DTO."""
    return WorkflowResult(
        id=w.id,
        org_id=w.org_id,
        project_id=w.project_id,
        name=w.name,
        description=w.description,
        active=w.active,
        created_by=w.created_by,
        created_at=ensure_utc(w.created_at),
        rule_count=rule_count,
    )


def _in_scope(org_id: str, project_id: str | None) -> list[Any]:
    """WHERE clauses for exactly one (org, project-or-null) scope."""
    if project_id is None:
        return [Workflow.org_id == org_id, Workflow.project_id.is_(None)]
    return [Workflow.org_id == org_id, Workflow.project_id == project_id]


class WorkflowRepository(BaseRepository[Workflow]):
    """Workflow repository. Implements IWorkflowRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Workflow)

    async def get_workflow(self, workflow_id: str) -> WorkflowResult | None:
        workflow = await self.get_by_id(workflow_id)
        return workflow_to_result(workflow) if workflow else None

    async def get_in_scope(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> WorkflowResult | None:
        result = await self.db.execute(
            select(Workflow)
            .where(Workflow.id == workflow_id, *_in_scope(org_id, project_id))
            .execution_options(populate_existing=True)
        )
        workflow = result.scalar_one_or_none()
        return workflow_to_result(workflow) if workflow else None

    async def get_by_name(
        self, org_id: str, project_id: str | None, name: str
    ) -> WorkflowResult | None:
        result = await self.db.execute(
            select(Workflow)
            .where(Workflow.name == name, *_in_scope(org_id, project_id))
            .execution_options(populate_existing=True)
        )
        workflow = result.scalar_one_or_none()
        return workflow_to_result(workflow) if workflow else None

    async def list_workflows(
        self, org_id: str, project_id: str | None
    ) -> list[WorkflowResult]:
        """Return workflows of the scope with their rule counts, by name."""
        result = await self.db.execute(
            select(Workflow, func.count(Rule.id).label("rule_count"))
            .outerjoin(Rule, Rule.workflow_id == Workflow.id)
            .where(*_in_scope(org_id, project_id))
            .group_by(Workflow.id)
            .order_by(Workflow.name.asc())
            .execution_options(populate_existing=True)
        )
        return [workflow_to_result(row.Workflow, row.rule_count) for row in result.all()]

    async def create_workflow(
        self,
        org_id: str,
        project_id: str | None,
        name: str,
        description: str | None,
        active: bool,
        created_by: str,
    ) -> WorkflowResult:
        """Create workflow; IntegrityError propagates on a name collision."""
        workflow = Workflow(
            org_id=org_id,
            project_id=project_id,
            name=name,
            description=description,
            active=active,
            created_by=created_by,
        )
        created = await self.create(workflow)
        return workflow_to_result(created)

    async def update_workflow(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        changes: dict[str, Any],
    ) -> WorkflowResult | None:
        """Apply name/description changes to the workflow in scope."""
        if not changes:
            return await self.get_in_scope(workflow_id, org_id, project_id)
        result = await self.db.execute(
            update(Workflow)
            .where(Workflow.id == workflow_id, *_in_scope(org_id, project_id))
            .values(**changes)
            .returning(*Workflow.__table__.c)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        return workflow_to_result(row) if row else None

    async def set_active_cascade(
        self,
        workflow_id: str,
        org_id: str,
        project_id: str | None,
        active: bool,
    ) -> bool:
        """Set the workflow's active flag and copy it onto every child rule.

        Two statements in the caller's transaction; the registry wraps
        them in a savepoint so no reader sees one without the other.
        """
        result = await self.db.execute(
            update(Workflow)
            .where(Workflow.id == workflow_id, *_in_scope(org_id, project_id))
            .values(active=active)
            .returning(Workflow.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            return False
        await self.db.execute(
            update(Rule)
            .where(Rule.workflow_id == workflow_id)
            .values(active=active)
            .execution_options(synchronize_session=False)
        )
        return True

    async def delete_workflow(
        self, workflow_id: str, org_id: str, project_id: str | None
    ) -> bool:
        """Delete the workflow; rules go with it through ON DELETE CASCADE."""
        result = await self.db.execute(
            delete(Workflow)
            .where(Workflow.id == workflow_id, *_in_scope(org_id, project_id))
            .returning(Workflow.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None
