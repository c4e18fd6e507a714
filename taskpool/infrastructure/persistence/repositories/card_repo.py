"""Card repository: cards with their status derived from their tasks."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.task import CardResult
from taskpool.domain.entities.card import derive_card_status
from taskpool.domain.enums import TaskStatus
from taskpool.infrastructure.persistence.models.task import Card, Task
from taskpool.infrastructure.persistence.repositories.base import BaseRepository
from taskpool.shared.utils import ensure_utc


def _to_result(
    c: Card, task_count: int, completed_count: int, available_count: int
) -> CardResult:
    """Map Card ORM plus task counts to CardResult DTO."""
    statuses: list[TaskStatus] = []
    if available_count:
        statuses.append(TaskStatus.AVAILABLE)
    if completed_count:
        statuses.append(TaskStatus.COMPLETED)
    if task_count - available_count - completed_count > 0:
        statuses.append(TaskStatus.CLAIMED)
    return CardResult(
        id=c.id,
        org_id=c.org_id,
        project_id=c.project_id,
        title=c.title,
        description=c.description,
        status=derive_card_status(statuses),
        task_count=task_count,
        completed_count=completed_count,
        created_by=c.created_by,
        created_at=ensure_utc(c.created_at),
    )


class CardRepository(BaseRepository[Card]):
    """Card repository. Implements ICardRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Card)

    async def get_card(self, card_id: str, org_id: str) -> CardResult | None:
        """Return the card with task counts from one LEFT JOIN aggregate."""
        stmt: Any = (
            select(
                Card,
                func.count(Task.id).label("task_count"),
                func.count(Task.id)
                .filter(Task.status == TaskStatus.COMPLETED.value)
                .label("completed_count"),
                func.count(Task.id)
                .filter(Task.status == TaskStatus.AVAILABLE.value)
                .label("available_count"),
            )
            .outerjoin(Task, Task.card_id == Card.id)
            .where(Card.id == card_id, Card.org_id == org_id)
            .group_by(Card.id)
            .execution_options(populate_existing=True)
        )
        row = (await self.db.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _to_result(
            row.Card, row.task_count, row.completed_count, row.available_count
        )

    async def create_card(
        self,
        org_id: str,
        project_id: str,
        title: str,
        created_by: str,
        description: str | None = None,
        color: str | None = None,
    ) -> CardResult:
        card = Card(
            org_id=org_id,
            project_id=project_id,
            title=title,
            description=description,
            color=color,
            created_by=created_by,
        )
        created = await self.create(card)
        return _to_result(created, 0, 0, 0)
