"""Composition root: wire repositories and services onto one session.

The caller owns the session and its transaction (see
taskpool.infrastructure.persistence.database.get_db_transactional); every
service built here shares it, so a transition and the rule evaluations the
caller runs afterwards can commit or roll back together.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.use_cases.tasks import TaskLifecycleService
from taskpool.application.use_cases.workflows import WorkflowRegistryService
from taskpool.infrastructure.persistence.repositories import (
    CardRepository,
    RuleExecutionRepository,
    RuleRepository,
    TaskEventRepository,
    TaskRepository,
    TaskTemplateRepository,
    WorkSessionRepository,
    WorkflowRepository,
)
from taskpool.infrastructure.services.task_template_renderer import TaskTemplateRenderer
from taskpool.infrastructure.services.workflow_engine import WorkflowEngine


@dataclass(frozen=True)
class Services:
    """The public services bound to one session."""

    lifecycle: TaskLifecycleService
    registry: WorkflowRegistryService
    engine: WorkflowEngine
    cards: CardRepository


def build_services(
    session: AsyncSession,
    *,
    template_renderer: TaskTemplateRenderer | None = None,
) -> Services:
    """Build lifecycle, registry and engine over session."""
    task_repo = TaskRepository(session)
    rule_repo = RuleRepository(session)
    template_repo = TaskTemplateRepository(session)
    execution_repo = RuleExecutionRepository(session)
    return Services(
        lifecycle=TaskLifecycleService(
            session,
            task_repo,
            task_event_repo=TaskEventRepository(session),
            tracker=WorkSessionRepository(session),
        ),
        registry=WorkflowRegistryService(
            session,
            WorkflowRepository(session),
            rule_repo,
            template_repo,
            execution_repo,
        ),
        engine=WorkflowEngine(
            session,
            rule_repo,
            execution_repo,
            template_repo,
            task_repo,
            template_renderer=template_renderer,
        ),
        cards=CardRepository(session),
    )
