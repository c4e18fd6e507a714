"""DTOs for tasks, cards and their side records (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from taskpool.core.constants import DEFAULT_PRIORITY
from taskpool.domain.enums import CardStatus, TaskStatus


@dataclass(frozen=True)
class TaskResult:
    """Task read model returned by the repository and the lifecycle service."""

    id: str
    org_id: str
    project_id: str
    type_id: str
    card_id: str | None
    title: str
    description: str | None
    priority: int
    status: str
    created_by: str
    claimed_by: str | None
    claimed_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    version: int


@dataclass(frozen=True)
class TaskDraft:
    """Fields of a task that is about to be created (e.g. from a template)."""

    title: str
    type_id: str
    description: str | None = None
    priority: int = DEFAULT_PRIORITY
    status: str = TaskStatus.AVAILABLE.value


@dataclass(frozen=True)
class CardResult:
    """Card with its status derived from its tasks."""

    id: str
    org_id: str
    project_id: str
    title: str
    description: str | None
    status: CardStatus
    task_count: int
    completed_count: int
    created_by: str
    created_at: datetime


@dataclass(frozen=True)
class TaskEventResult:
    """One entry of the task audit trail."""

    id: str
    org_id: str
    project_id: str
    origin_type: str
    origin_id: str
    actor_user_id: str | None
    event_type: str
    from_status: str | None
    to_status: str
    created_at: datetime


@dataclass(frozen=True)
class WorkSessionResult:
    """A "now working" session of a user on a task."""

    id: str
    user_id: str
    task_id: str
    started_at: datetime
    ended_at: datetime | None
    ended_reason: str | None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None
