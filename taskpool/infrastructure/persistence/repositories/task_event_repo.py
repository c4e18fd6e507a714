"""Task audit trail repository (append-only)."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.task import TaskEventResult
from taskpool.infrastructure.persistence.models.task_event import TaskEvent
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.shared.utils import ensure_utc


def _to_result(e: TaskEvent) -> TaskEventResult:
    """Map TaskEvent ORM to TaskEventResult DTO."""
    return TaskEventResult(
        id=e.id,
        org_id=e.org_id,
        project_id=e.project_id,
        origin_type=e.origin_type,
        origin_id=e.origin_id,
        actor_user_id=e.actor_user_id,
        event_type=e.event_type,
        from_status=e.from_status,
        to_status=e.to_status,
        created_at=ensure_utc(e.created_at),
    )


class TaskEventRepository(BaseRepository[TaskEvent]):
    """Task audit trail repository. Implements ITaskEventRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, TaskEvent)

    async def append(
        self,
        org_id: str,
        project_id: str,
        origin_type: str,
        origin_id: str,
        actor_user_id: str | None,
        event_type: str,
        from_status: str | None,
        to_status: str,
    ) -> TaskEventResult:
        event = TaskEvent(
            org_id=org_id,
            project_id=project_id,
            origin_type=origin_type,
            origin_id=origin_id,
            actor_user_id=actor_user_id,
            event_type=event_type,
            from_status=from_status,
            to_status=to_status,
        )
        created = await self.create(event)
        return _to_result(created)

    async def list_for_origin(
        self, origin_type: str, origin_id: str
    ) -> list[TaskEventResult]:
        result = await self.db.execute(
            select(TaskEvent)
            .where(TaskEvent.origin_type == origin_type, TaskEvent.origin_id == origin_id)
            .order_by(TaskEvent.created_at.asc(), TaskEvent.id.asc())
        )
        return [_to_result(e) for e in result.scalars().all()]
