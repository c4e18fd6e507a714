"""Work session repository: the "now working" tracker."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.task import WorkSessionResult
from taskpool.infrastructure.persistence.models.work_session import WorkSession
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.shared.utils import ensure_utc, utc_now


def _to_result(s: WorkSession) -> WorkSessionResult:
    """Map WorkSession ORM to WorkSessionResult DTO."""
    return WorkSessionResult(
        id=s.id,
        user_id=s.user_id,
        task_id=s.task_id,
        started_at=ensure_utc(s.started_at),
        ended_at=ensure_utc(s.ended_at),
        ended_reason=s.ended_reason,
    )


class WorkSessionRepository(BaseRepository[WorkSession]):
    """Work session repository. Implements INowWorkingTracker.

    A user may work on several tasks at once; a task has at most one
    active session (partial unique index on task_id WHERE ended_at IS NULL).
    """

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WorkSession)

    async def get_active_for_task(self, task_id: str) -> WorkSessionResult | None:
        result = await self.db.execute(
            select(WorkSession)
            .where(WorkSession.task_id == task_id, WorkSession.ended_at.is_(None))
            .execution_options(populate_existing=True)
        )
        session = result.scalar_one_or_none()
        return _to_result(session) if session else None

    async def start_session(self, user_id: str, task_id: str) -> WorkSessionResult:
        """Open a session; IntegrityError propagates if the task already has one."""
        created = await self.create(WorkSession(user_id=user_id, task_id=task_id))
        return _to_result(created)

    async def end_sessions_for_task(
        self, task_id: str, user_id: str, reason: str
    ) -> int:
        result = await self.db.execute(
            update(WorkSession)
            .where(
                WorkSession.task_id == task_id,
                WorkSession.user_id == user_id,
                WorkSession.ended_at.is_(None),
            )
            .values(ended_at=utc_now(), ended_reason=reason)
            .returning(WorkSession.id)
            .execution_options(synchronize_session=False)
        )
        return len(result.scalars().all())

    async def list_active_for_user(self, user_id: str) -> list[WorkSessionResult]:
        result = await self.db.execute(
            select(WorkSession)
            .where(WorkSession.user_id == user_id, WorkSession.ended_at.is_(None))
            .order_by(WorkSession.started_at.asc(), WorkSession.id.asc())
            .execution_options(populate_existing=True)
        )
        return [_to_result(s) for s in result.scalars().all()]
