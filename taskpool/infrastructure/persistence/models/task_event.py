"""Task audit trail ORM model. One row per successful task transition."""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from taskpool.infrastructure.persistence.database import Base
from taskpool.infrastructure.persistence.models.mixins import OrgScopedModel


class TaskEvent(OrgScopedModel, Base):
    """Append-only audit row. Table: task_events."""

    __tablename__ = "task_events"

    project_id: Mapped[str] = mapped_column(String, nullable=False)
    origin_type: Mapped[str] = mapped_column(String(16), nullable=False)
    origin_id: Mapped[str] = mapped_column(String, nullable=False)
    actor_user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        Index("ix_task_events_origin", "origin_type", "origin_id", "created_at"),
    )
