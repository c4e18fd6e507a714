"""Task and Card ORM models. Tasks move through the shared pool state machine."""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from taskpool.core.constants import (
    DEFAULT_PRIORITY,
    PRIORITY_MAX,
    PRIORITY_MIN,
    TASK_TITLE_MAX_LENGTH,
)
from taskpool.domain.enums import TaskStatus
from taskpool.infrastructure.persistence.database import Base
from taskpool.infrastructure.persistence.models.mixins import (
    OrgScopedModel,
    VersionedMixin,
    values_check,
)


class Card(OrgScopedModel, Base):
    """Card grouping tasks of a project. Table: cards. Status is derived, not stored."""

    __tablename__ = "cards"

    project_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_by: Mapped[str] = mapped_column(String, nullable=False)


class Task(OrgScopedModel, VersionedMixin, Base):
    """Task in a project's pool. Table: tasks.

    claimed_by is set exactly when status is claimed or completed; the
    CHECK constraint enforces it for every writer.
    """

    __tablename__ = "tasks"

    project_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    type_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    card_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("cards.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(TASK_TITLE_MAX_LENGTH), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
        server_default=sa.text(str(DEFAULT_PRIORITY)),
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=TaskStatus.AVAILABLE.value,
        server_default=TaskStatus.AVAILABLE.value,
    )
    created_by: Mapped[str] = mapped_column(String, nullable=False)
    claimed_by: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_tasks_org_project_status", "org_id", "project_id", "status"),
        values_check("status", TaskStatus.values(), "tasks_status_check"),
        CheckConstraint(
            f"priority BETWEEN {PRIORITY_MIN} AND {PRIORITY_MAX}",
            name="tasks_priority_check",
        ),
        CheckConstraint(
            "(status = 'available' AND claimed_by IS NULL) OR "
            "(status IN ('claimed', 'completed') AND claimed_by IS NOT NULL)",
            name="tasks_claimed_by_check",
        ),
    )
