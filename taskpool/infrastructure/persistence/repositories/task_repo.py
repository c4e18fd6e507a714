"""Task repository: creation, scoped reads and conditional state transitions."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.task import TaskDraft, TaskResult
from taskpool.domain.entities.task import TaskEntity
from taskpool.domain.enums import TaskAction, TaskStatus
from taskpool.infrastructure.persistence.models.task import Task
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.shared.utils import ensure_utc, utc_now


def _to_result(t: Any) -> TaskResult:
    """Map a Task ORM object or a RETURNING row to TaskResult DTO."""
    return TaskResult(
        id=t.id,
        org_id=t.org_id,
        project_id=t.project_id,
        type_id=t.type_id,
        card_id=t.card_id,
        title=t.title,
        description=t.description,
        priority=t.priority,
        status=t.status,
        created_by=t.created_by,
        claimed_by=t.claimed_by,
        claimed_at=ensure_utc(t.claimed_at),
        completed_at=ensure_utc(t.completed_at),
        created_at=ensure_utc(t.created_at),
        version=t.version,
    )


def _transition_values(action: TaskAction, user_id: str) -> dict[str, Any]:
    """Columns written by a successful transition (besides version)."""
    status = TaskEntity.target_status(action).value
    if action is TaskAction.CLAIM:
        return {"status": status, "claimed_by": user_id, "claimed_at": utc_now()}
    if action is TaskAction.RELEASE:
        return {"status": status, "claimed_by": None, "claimed_at": None}
    return {"status": status, "completed_at": utc_now()}


class TaskRepository(BaseRepository[Task]):
    """Task repository. Implements ITaskRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Task)

    async def get_task(self, task_id: str, org_id: str) -> TaskResult | None:
        result = await self.db.execute(
            select(Task)
            .where(Task.id == task_id, Task.org_id == org_id)
            .execution_options(populate_existing=True)
        )
        task = result.scalar_one_or_none()
        return _to_result(task) if task else None

    async def create_task(
        self,
        org_id: str,
        project_id: str,
        draft: TaskDraft,
        created_by: str,
        card_id: str | None = None,
    ) -> TaskResult:
        """Create an available task at version 1 and return the result DTO."""
        task = Task(
            org_id=org_id,
            project_id=project_id,
            type_id=draft.type_id,
            card_id=card_id,
            title=draft.title,
            description=draft.description,
            priority=draft.priority,
            status=TaskStatus.AVAILABLE.value,
            created_by=created_by,
            version=1,
        )
        created = await self.create(task)
        return _to_result(created)

    async def apply_transition(
        self,
        task_id: str,
        org_id: str,
        action: TaskAction,
        user_id: str,
        expected_version: int,
    ) -> TaskResult | None:
        """Run the single conditional UPDATE for the action.

        Matches on id, org, required source status, expected version and,
        for release/complete, the claimant. Returns None when zero rows
        matched; the caller re-reads to classify the failure.
        """
        stmt = (
            update(Task)
            .where(
                Task.id == task_id,
                Task.org_id == org_id,
                Task.status == TaskEntity.source_status(action).value,
                Task.version == expected_version,
            )
            .values(version=Task.version + 1, **_transition_values(action, user_id))
            .returning(*Task.__table__.c)
            .execution_options(synchronize_session=False)
        )
        if action is not TaskAction.CLAIM:
            stmt = stmt.where(Task.claimed_by == user_id)
        result = await self.db.execute(stmt)
        row = result.one_or_none()
        return _to_result(row) if row else None
