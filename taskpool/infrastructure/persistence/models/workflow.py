"""Workflow automation ORM models: workflows, rules, templates and the rule ledger."""

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from taskpool.core.constants import DEFAULT_PRIORITY, PRIORITY_MAX, PRIORITY_MIN
from taskpool.domain.enums import ResourceType
from taskpool.infrastructure.persistence.database import Base
from taskpool.infrastructure.persistence.models.mixins import (
    CreatedAtMixin,
    CuidMixin,
    OrgScopedModel,
    values_check,
)
from taskpool.shared.enums import RuleOutcome, SuppressionReason


class Workflow(OrgScopedModel, Base):
    """Named rule container. Table: workflows.

    Scoped to an organization (project_id NULL) or to one project. Names
    are unique per scope; two partial indexes cover the two cases because
    NULL never collides in a plain unique constraint.
    """

    __tablename__ = "workflows"

    project_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.false()
    )
    created_by: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index(
            "uq_workflows_org_name",
            "org_id",
            "name",
            unique=True,
            postgresql_where=sa.text("project_id IS NULL"),
            sqlite_where=sa.text("project_id IS NULL"),
        ),
        Index(
            "uq_workflows_project_name",
            "org_id",
            "project_id",
            "name",
            unique=True,
            postgresql_where=sa.text("project_id IS NOT NULL"),
            sqlite_where=sa.text("project_id IS NOT NULL"),
        ),
    )


class Rule(CuidMixin, CreatedAtMixin, Base):
    """Trigger criteria inside a workflow. Table: rules.

    active is kept equal to False whenever the parent workflow is
    inactive (the registry cascades the flag).
    """

    __tablename__ = "rules"

    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    resource_type: Mapped[str] = mapped_column(String(16), nullable=False)
    task_type_id: Mapped[str | None] = mapped_column(String, nullable=True)
    to_state: Mapped[str] = mapped_column(String(32), nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.true()
    )
    user_triggered_only: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.true()
    )

    __table_args__ = (
        Index("ix_rules_trigger", "resource_type", "to_state", "active"),
        values_check("resource_type", ResourceType.values(), "rules_resource_type_check"),
    )


class TaskTemplate(OrgScopedModel, Base):
    """Reusable task blueprint with placeholders. Table: task_templates."""

    __tablename__ = "task_templates"

    project_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type_id: Mapped[str] = mapped_column(String, nullable=False)
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
        server_default=sa.text(str(DEFAULT_PRIORITY)),
    )
    created_by: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        CheckConstraint(
            f"priority BETWEEN {PRIORITY_MIN} AND {PRIORITY_MAX}",
            name="task_templates_priority_check",
        ),
    )


class RuleTemplate(Base):
    """Association rule -> template with execution order. Table: rule_templates."""

    __tablename__ = "rule_templates"

    rule_id: Mapped[str] = mapped_column(
        String, ForeignKey("rules.id", ondelete="CASCADE"), primary_key=True
    )
    template_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("task_templates.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    execution_order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )


class RuleExecution(CuidMixin, CreatedAtMixin, Base):
    """Append-only rule ledger. Table: rule_executions.

    UNIQUE(rule_id, origin_type, origin_id): at most one outcome per rule
    and origin entity, which makes evaluation idempotent.
    """

    __tablename__ = "rule_executions"

    rule_id: Mapped[str] = mapped_column(
        String, ForeignKey("rules.id", ondelete="CASCADE"), nullable=False
    )
    origin_type: Mapped[str] = mapped_column(String(16), nullable=False)
    origin_id: Mapped[str] = mapped_column(String, nullable=False)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)
    suppression_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "rule_id", "origin_type", "origin_id", name="uq_rule_executions_origin"
        ),
        Index("ix_rule_executions_rule_created", "rule_id", "created_at"),
        values_check(
            "origin_type", ResourceType.values(), "rule_executions_origin_type_check"
        ),
        values_check("outcome", RuleOutcome.values(), "rule_executions_outcome_check"),
        CheckConstraint(
            "(outcome = 'applied' AND suppression_reason IS NULL) OR "
            "(outcome = 'suppressed' AND suppression_reason IN ({}))".format(
                ", ".join(f"'{v}'" for v in SuppressionReason.values())
            ),
            name="rule_executions_reason_check",
        ),
    )
