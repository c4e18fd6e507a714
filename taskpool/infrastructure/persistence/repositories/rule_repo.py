"""Rule repository: rules inside workflows and trigger matching."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.workflow import RuleResult, WorkflowResult
from taskpool.infrastructure.persistence.models.workflow import Rule, Workflow
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.infrastructure.persistence.repositories.workflow_repo import (
    workflow_to_result,
)
from taskpool.shared.utils import ensure_utc

if TYPE_CHECKING:
    from taskpool.schemas.workflow import RuleCreate


def _to_result(r: Any) -> RuleResult:
    """Map Rule ORM (or RETURNING row) to RuleResult DTO."""
    return RuleResult(
        id=r.id,
        workflow_id=r.workflow_id,
        name=r.name,
        goal=r.goal,
        resource_type=r.resource_type,
        task_type_id=r.task_type_id,
        to_state=r.to_state,
        active=r.active,
        user_triggered_only=r.user_triggered_only,
        created_at=ensure_utc(r.created_at),
    )


class RuleRepository(BaseRepository[Rule]):
    """Rule repository. Implements IRuleRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Rule)

    async def get_rule(self, rule_id: str) -> RuleResult | None:
        rule = await self.get_by_id(rule_id)
        return _to_result(rule) if rule else None

    async def get_rule_with_workflow(
        self, rule_id: str
    ) -> tuple[RuleResult, WorkflowResult] | None:
        """Re-read the rule and its workflow (current activation flags)."""
        result = await self.db.execute(
            select(Rule, Workflow)
            .join(Workflow, Workflow.id == Rule.workflow_id)
            .where(Rule.id == rule_id)
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return _to_result(row.Rule), workflow_to_result(row.Workflow)

    async def list_rules(self, workflow_id: str) -> list[RuleResult]:
        result = await self.db.execute(
            select(Rule)
            .where(Rule.workflow_id == workflow_id)
            .order_by(Rule.created_at.asc(), Rule.id.asc())
            .execution_options(populate_existing=True)
        )
        return [_to_result(r) for r in result.scalars().all()]

    async def create_rule(
        self, workflow_id: str, data: RuleCreate, active: bool
    ) -> RuleResult:
        """Create a rule; active is the already-coerced effective flag."""
        rule = Rule(
            workflow_id=workflow_id,
            name=data.name,
            goal=data.goal,
            resource_type=data.resource_type,
            task_type_id=data.task_type_id,
            to_state=data.to_state,
            active=active,
            user_triggered_only=data.user_triggered_only,
        )
        created = await self.create(rule)
        return _to_result(created)

    async def update_rule(
        self, rule_id: str, changes: dict[str, Any]
    ) -> RuleResult | None:
        if not changes:
            return await self.get_rule(rule_id)
        result = await self.db.execute(
            update(Rule)
            .where(Rule.id == rule_id)
            .values(**changes)
            .returning(*Rule.__table__.c)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        return _to_result(row) if row else None

    async def delete_rule(self, rule_id: str) -> bool:
        result = await self.db.execute(
            delete(Rule)
            .where(Rule.id == rule_id)
            .returning(Rule.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    async def find_matching(
        self,
        org_id: str,
        project_id: str,
        resource_type: str,
        to_state: str,
    ) -> list[tuple[RuleResult, WorkflowResult]]:
        """Active rules in active workflows that cover (org, project).

        Org-wide workflows apply to every project of the organization.
        Project workflows come first, then org-wide ones, by rule id.
        The task-type filter is left to RuleEntity.matches.
        """
        result = await self.db.execute(
            select(Rule, Workflow)
            .join(Workflow, Workflow.id == Rule.workflow_id)
            .where(
                Rule.active.is_(True),
                Workflow.active.is_(True),
                Rule.resource_type == resource_type,
                Rule.to_state == to_state,
                Workflow.org_id == org_id,
                (Workflow.project_id.is_(None)) | (Workflow.project_id == project_id),
            )
            .order_by(Workflow.project_id.is_(None).asc(), Rule.id.asc())
            .execution_options(populate_existing=True)
        )
        return [
            (_to_result(row.Rule), workflow_to_result(row.Workflow))
            for row in result.all()
        ]
