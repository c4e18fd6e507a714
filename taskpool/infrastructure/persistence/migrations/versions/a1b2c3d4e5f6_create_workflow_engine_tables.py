"""create task pool and workflow automation tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

Tasks and cards, the task audit trail and work sessions; workflows, rules,
task templates, rule/template links and the rule execution ledger.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "cards",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=32), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cards_org_id", "cards", ["org_id"], unique=False)
    op.create_index("ix_cards_project_id", "cards", ["project_id"], unique=False)

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=False),
        sa.Column("type_id", sa.String(), nullable=False),
        sa.Column("card_id", sa.String(), nullable=True),
        sa.Column("title", sa.String(length=56), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", sa.Integer(), server_default=sa.text("3"), nullable=False),
        sa.Column(
            "status", sa.String(length=32), server_default="available", nullable=False
        ),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("claimed_by", sa.String(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('available', 'claimed', 'completed')", name="tasks_status_check"
        ),
        sa.CheckConstraint("priority BETWEEN 1 AND 5", name="tasks_priority_check"),
        sa.CheckConstraint(
            "(status = 'available' AND claimed_by IS NULL) OR "
            "(status IN ('claimed', 'completed') AND claimed_by IS NOT NULL)",
            name="tasks_claimed_by_check",
        ),
    )
    op.create_index("ix_tasks_org_id", "tasks", ["org_id"], unique=False)
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"], unique=False)
    op.create_index("ix_tasks_type_id", "tasks", ["type_id"], unique=False)
    op.create_index("ix_tasks_card_id", "tasks", ["card_id"], unique=False)
    op.create_index("ix_tasks_claimed_by", "tasks", ["claimed_by"], unique=False)
    op.create_index(
        "ix_tasks_org_project_status",
        "tasks",
        ["org_id", "project_id", "status"],
        unique=False,
    )

    op.create_table(
        "task_events",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=False),
        sa.Column("origin_type", sa.String(length=16), nullable=False),
        sa.Column("origin_id", sa.String(), nullable=False),
        sa.Column("actor_user_id", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("to_status", sa.String(length=32), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_events_org_id", "task_events", ["org_id"], unique=False)
    op.create_index(
        "ix_task_events_origin",
        "task_events",
        ["origin_type", "origin_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "user_task_work_sessions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_reason", sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "uq_work_sessions_active_task",
        "user_task_work_sessions",
        ["task_id"],
        unique=True,
        postgresql_where=sa.text("ended_at IS NULL"),
    )
    op.create_index(
        "ix_work_sessions_user_active",
        "user_task_work_sessions",
        ["user_id"],
        unique=False,
        postgresql_where=sa.text("ended_at IS NULL"),
    )

    op.create_table(
        "workflows",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_workflows_org_id", "workflows", ["org_id"], unique=False)
    op.create_index("ix_workflows_project_id", "workflows", ["project_id"], unique=False)
    # NULL project_id never collides in a plain unique constraint.
    op.create_index(
        "uq_workflows_org_name",
        "workflows",
        ["org_id", "name"],
        unique=True,
        postgresql_where=sa.text("project_id IS NULL"),
    )
    op.create_index(
        "uq_workflows_project_name",
        "workflows",
        ["org_id", "project_id", "name"],
        unique=True,
        postgresql_where=sa.text("project_id IS NOT NULL"),
    )

    op.create_table(
        "rules",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("goal", sa.Text(), nullable=True),
        sa.Column("resource_type", sa.String(length=16), nullable=False),
        sa.Column("task_type_id", sa.String(), nullable=True),
        sa.Column("to_state", sa.String(length=32), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "user_triggered_only", sa.Boolean(), server_default=sa.true(), nullable=False
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["workflows.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "resource_type IN ('task', 'card')", name="rules_resource_type_check"
        ),
    )
    op.create_index("ix_rules_workflow_id", "rules", ["workflow_id"], unique=False)
    op.create_index(
        "ix_rules_trigger", "rules", ["resource_type", "to_state", "active"], unique=False
    )

    op.create_table(
        "task_templates",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type_id", sa.String(), nullable=False),
        sa.Column("priority", sa.Integer(), server_default=sa.text("3"), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "priority BETWEEN 1 AND 5", name="task_templates_priority_check"
        ),
    )
    op.create_index(
        "ix_task_templates_org_id", "task_templates", ["org_id"], unique=False
    )
    op.create_index(
        "ix_task_templates_project_id", "task_templates", ["project_id"], unique=False
    )

    op.create_table(
        "rule_templates",
        sa.Column("rule_id", sa.String(), nullable=False),
        sa.Column("template_id", sa.String(), nullable=False),
        sa.Column(
            "execution_order", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.PrimaryKeyConstraint("rule_id", "template_id"),
        sa.ForeignKeyConstraint(["rule_id"], ["rules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["template_id"], ["task_templates.id"], ondelete="CASCADE"
        ),
    )
    op.create_index(
        "ix_rule_templates_template_id", "rule_templates", ["template_id"], unique=False
    )

    op.create_table(
        "rule_executions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("rule_id", sa.String(), nullable=False),
        sa.Column("origin_type", sa.String(length=16), nullable=False),
        sa.Column("origin_id", sa.String(), nullable=False),
        sa.Column("outcome", sa.String(length=16), nullable=False),
        sa.Column("suppression_reason", sa.String(length=32), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["rule_id"], ["rules.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "rule_id", "origin_type", "origin_id", name="uq_rule_executions_origin"
        ),
        sa.CheckConstraint(
            "origin_type IN ('task', 'card')", name="rule_executions_origin_type_check"
        ),
        sa.CheckConstraint(
            "outcome IN ('applied', 'suppressed')", name="rule_executions_outcome_check"
        ),
        sa.CheckConstraint(
            "(outcome = 'applied' AND suppression_reason IS NULL) OR "
            "(outcome = 'suppressed' AND suppression_reason IN "
            "('inactive', 'not_matching', 'not_user_triggered', 'idempotent'))",
            name="rule_executions_reason_check",
        ),
    )
    op.create_index(
        "ix_rule_executions_rule_created",
        "rule_executions",
        ["rule_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_rule_executions_rule_created", table_name="rule_executions")
    op.drop_table("rule_executions")
    op.drop_index("ix_rule_templates_template_id", table_name="rule_templates")
    op.drop_table("rule_templates")
    op.drop_index("ix_task_templates_project_id", table_name="task_templates")
    op.drop_index("ix_task_templates_org_id", table_name="task_templates")
    op.drop_table("task_templates")
    op.drop_index("ix_rules_trigger", table_name="rules")
    op.drop_index("ix_rules_workflow_id", table_name="rules")
    op.drop_table("rules")
    op.drop_index("uq_workflows_project_name", table_name="workflows")
    op.drop_index("uq_workflows_org_name", table_name="workflows")
    op.drop_index("ix_workflows_project_id", table_name="workflows")
    op.drop_index("ix_workflows_org_id", table_name="workflows")
    op.drop_table("workflows")
    op.drop_index("ix_work_sessions_user_active", table_name="user_task_work_sessions")
    op.drop_index("uq_work_sessions_active_task", table_name="user_task_work_sessions")
    op.drop_table("user_task_work_sessions")
    op.drop_index("ix_task_events_origin", table_name="task_events")
    op.drop_index("ix_task_events_org_id", table_name="task_events")
    op.drop_table("task_events")
    op.drop_index("ix_tasks_org_project_status", table_name="tasks")
    op.drop_index("ix_tasks_claimed_by", table_name="tasks")
    op.drop_index("ix_tasks_card_id", table_name="tasks")
    op.drop_index("ix_tasks_type_id", table_name="tasks")
    op.drop_index("ix_tasks_project_id", table_name="tasks")
    op.drop_index("ix_tasks_org_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("ix_cards_project_id", table_name="cards")
    op.drop_index("ix_cards_org_id", table_name="cards")
    op.drop_table("cards")
