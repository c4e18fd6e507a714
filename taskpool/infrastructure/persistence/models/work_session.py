"""Work session ORM model: the "now working" tracker."""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from taskpool.infrastructure.persistence.database import Base
from taskpool.infrastructure.persistence.models.mixins import CuidMixin
from taskpool.shared.utils import utc_now


class WorkSession(CuidMixin, Base):
    """A user's active or past session on a task. Table: user_task_work_sessions.

    ended_at NULL means active; at most one active session per task.
    """

    __tablename__ = "user_task_work_sessions"

    user_id: Mapped[str] = mapped_column(String, nullable=False)
    task_id: Mapped[str] = mapped_column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=sa.func.now(),
        nullable=False,
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    ended_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        Index(
            "uq_work_sessions_active_task",
            "task_id",
            unique=True,
            postgresql_where=sa.text("ended_at IS NULL"),
            sqlite_where=sa.text("ended_at IS NULL"),
        ),
        Index(
            "ix_work_sessions_user_active",
            "user_id",
            postgresql_where=sa.text("ended_at IS NULL"),
            sqlite_where=sa.text("ended_at IS NULL"),
        ),
    )
