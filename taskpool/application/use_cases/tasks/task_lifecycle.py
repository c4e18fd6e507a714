"""Task lifecycle: claim, release and complete with optimistic locking.

Each transition is one conditional UPDATE (see ITaskRepository.apply_transition).
When it matches nothing the task is re-read and the failure classified by
TaskEntity. The audit trail and "now working" bookkeeping run afterwards in
their own savepoints and never fail the transition.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskpool.application.dtos.task import TaskDraft, TaskResult, WorkSessionResult
from taskpool.application.interfaces.repositories import (
    INowWorkingTracker,
    ITaskEventRepository,
    ITaskRepository,
)
from taskpool.core.constants import DEFAULT_PRIORITY, TASK_TITLE_MAX_LENGTH
from taskpool.domain.entities.task import TaskEntity
from taskpool.domain.enums import ResourceType, TaskAction, TaskStatus
from taskpool.domain.exceptions import (
    ResourceNotFoundException,
    TaskForbiddenException,
    TaskpoolException,
    ValidationException,
)
from taskpool.domain.value_objects.core import Priority
from taskpool.infrastructure.exceptions import translate_storage_errors
from taskpool.shared.enums import TaskEventType, WorkSessionEndReason
from taskpool.shared.telemetry.logging import get_logger
from taskpool.shared.telemetry.tracing import add_span_attributes, add_span_event, traced

logger = get_logger(__name__)

_EVENT_TYPES = {
    TaskAction.CLAIM: TaskEventType.CLAIMED,
    TaskAction.RELEASE: TaskEventType.RELEASED,
    TaskAction.COMPLETE: TaskEventType.COMPLETED,
}

_SESSION_END_REASONS = {
    TaskAction.RELEASE: WorkSessionEndReason.TASK_RELEASED,
    TaskAction.COMPLETE: WorkSessionEndReason.TASK_COMPLETED,
}


def _to_entity(task: TaskResult) -> TaskEntity:
    """Map TaskResult (application DTO) to TaskEntity (domain entity)."""
    return TaskEntity(
        id=task.id,
        org_id=task.org_id,
        project_id=task.project_id,
        type_id=task.type_id,
        status=task.status,
        claimed_by=task.claimed_by,
        version=task.version,
        card_id=task.card_id,
    )


class TaskLifecycleService:
    """Task state machine over the shared pool (org-scoped)."""

    def __init__(
        self,
        db: AsyncSession,
        task_repo: ITaskRepository,
        task_event_repo: ITaskEventRepository | None = None,
        tracker: INowWorkingTracker | None = None,
    ) -> None:
        self.db = db
        self.task_repo = task_repo
        self.task_event_repo = task_event_repo
        self.tracker = tracker

    async def get_task(self, org_id: str, task_id: str) -> TaskResult:
        """Return the task if it belongs to the organization; else ResourceNotFoundException."""
        with translate_storage_errors("get_task"):
            task = await self.task_repo.get_task(task_id, org_id)
        if task is None:
            raise ResourceNotFoundException("task", task_id)
        return task

    async def create_task(
        self,
        org_id: str,
        project_id: str,
        title: str,
        type_id: str,
        created_by: str,
        *,
        description: str | None = None,
        priority: int = DEFAULT_PRIORITY,
        card_id: str | None = None,
    ) -> TaskResult:
        """Create an available task at version 1.

        Raises:
            ValidationException: Empty or over-long title, or priority outside 1..5.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationException("Task title is required", field="title")
        if len(title) > TASK_TITLE_MAX_LENGTH:
            raise ValidationException(
                f"Task title must be at most {TASK_TITLE_MAX_LENGTH} characters",
                field="title",
            )
        if not type_id:
            raise ValidationException("Task type is required", field="type_id")
        try:
            priority = Priority(priority).value
        except ValueError as e:
            raise ValidationException(str(e), field="priority") from e

        draft = TaskDraft(
            title=title, type_id=type_id, description=description, priority=priority
        )
        with translate_storage_errors("create_task"):
            return await self.task_repo.create_task(
                org_id, project_id, draft, created_by, card_id=card_id
            )

    @traced("task_lifecycle.claim_task")
    async def claim_task(
        self, org_id: str, task_id: str, user_id: str, version: int
    ) -> TaskResult:
        """Claim an available task for user_id.

        Raises:
            ResourceNotFoundException: No such task in the organization.
            TaskConflictException: not_available or version_mismatch.
        """
        return await self._transition(TaskAction.CLAIM, org_id, task_id, user_id, version)

    @traced("task_lifecycle.release_task")
    async def release_task(
        self, org_id: str, task_id: str, user_id: str, version: int
    ) -> TaskResult:
        """Return a claimed task to the pool; only the claimant may release.

        Raises:
            ResourceNotFoundException: No such task in the organization.
            TaskForbiddenException: Task is held by another user.
            TaskConflictException: invalid_transition or version_mismatch.
        """
        return await self._transition(
            TaskAction.RELEASE, org_id, task_id, user_id, version
        )

    @traced("task_lifecycle.complete_task")
    async def complete_task(
        self, org_id: str, task_id: str, user_id: str, version: int
    ) -> TaskResult:
        """Complete a claimed task; only the claimant may complete (claimant is kept).

        Raises:
            ResourceNotFoundException: No such task in the organization.
            TaskForbiddenException: Task is held by another user.
            TaskConflictException: invalid_transition or version_mismatch.
        """
        return await self._transition(
            TaskAction.COMPLETE, org_id, task_id, user_id, version
        )

    async def _transition(
        self,
        action: TaskAction,
        org_id: str,
        task_id: str,
        user_id: str,
        version: int,
    ) -> TaskResult:
        operation = f"{action.value}_task"
        with translate_storage_errors(operation):
            if action is not TaskAction.CLAIM:
                current = await self.task_repo.get_task(task_id, org_id)
                if current is None:
                    raise ResourceNotFoundException("task", task_id)
                if _to_entity(current).is_claimed_by_other(user_id):
                    raise TaskForbiddenException(task_id, action.value)

            updated = await self.task_repo.apply_transition(
                task_id, org_id, action, user_id, version
            )
            if updated is None:
                raise await self._classify_failure(
                    action, org_id, task_id, user_id, version
                )

        add_span_attributes(**{"task.status": updated.status, "task.version": updated.version})
        logger.info(
            "Task %s %s by %s (version %d -> %d)",
            task_id,
            TaskEntity.target_status(action).value,
            user_id,
            version,
            updated.version,
        )
        await self._record_event(action, updated, user_id)
        await self._end_work_sessions(action, updated, user_id)
        return updated

    async def _classify_failure(
        self,
        action: TaskAction,
        org_id: str,
        task_id: str,
        user_id: str,
        version: int,
    ) -> TaskpoolException:
        current = await self.task_repo.get_task(task_id, org_id)
        if current is None:
            return ResourceNotFoundException("task", task_id)
        error = _to_entity(current).classify_failure(action, user_id, version)
        add_span_event(
            "task.transition_rejected",
            {"task.action": action.value, "error.code": error.error_code},
        )
        logger.debug("Task %s %s rejected: %s", task_id, action.value, error.message)
        return error

    async def _record_event(
        self, action: TaskAction, task: TaskResult, user_id: str
    ) -> None:
        """Append the audit row; a failure is logged and ignored."""
        if self.task_event_repo is None:
            return
        try:
            async with self.db.begin_nested():
                await self.task_event_repo.append(
                    org_id=task.org_id,
                    project_id=task.project_id,
                    origin_type=ResourceType.TASK.value,
                    origin_id=task.id,
                    actor_user_id=user_id,
                    event_type=_EVENT_TYPES[action].value,
                    from_status=TaskEntity.source_status(action).value,
                    to_status=task.status,
                )
        except Exception:
            logger.warning(
                "Failed to record %s event for task %s", action.value, task.id, exc_info=True
            )

    async def _end_work_sessions(
        self, action: TaskAction, task: TaskResult, user_id: str
    ) -> None:
        """Close the actor's "now working" sessions on release/complete."""
        reason = _SESSION_END_REASONS.get(action)
        if reason is None or self.tracker is None:
            return
        try:
            async with self.db.begin_nested():
                closed = await self.tracker.end_sessions_for_task(
                    task.id, user_id, reason.value
                )
            if closed:
                logger.debug("Closed %d work session(s) on task %s", closed, task.id)
        except Exception:
            logger.warning(
                "Failed to end work sessions for task %s", task.id, exc_info=True
            )

    # "Now working" tracker

    def _require_tracker(self) -> INowWorkingTracker:
        if self.tracker is None:
            raise TaskpoolException(
                "Work session tracking is not configured", "SERVICE_UNAVAILABLE"
            )
        return self.tracker

    async def start_working(
        self, org_id: str, task_id: str, user_id: str
    ) -> WorkSessionResult:
        """Mark user_id as currently working on a task they hold.

        Starting again while a session is open returns the open session.

        Raises:
            ResourceNotFoundException: No such task in the organization.
            TaskForbiddenException: The task is not claimed by user_id.
        """
        tracker = self._require_tracker()
        task = await self.get_task(org_id, task_id)
        if task.status != TaskStatus.CLAIMED.value or task.claimed_by != user_id:
            raise TaskForbiddenException(task_id, "start_working")
        with translate_storage_errors("start_working"):
            active = await tracker.get_active_for_task(task_id)
            if active is not None and active.user_id == user_id:
                return active
            try:
                async with self.db.begin_nested():
                    return await tracker.start_session(user_id, task_id)
            except IntegrityError:
                # Another request opened the session first.
                active = await tracker.get_active_for_task(task_id)
                if active is None or active.user_id != user_id:
                    raise
                return active

    async def pause_working(self, org_id: str, task_id: str, user_id: str) -> int:
        """Close user_id's open sessions on the task; returns how many were closed."""
        tracker = self._require_tracker()
        await self.get_task(org_id, task_id)
        with translate_storage_errors("pause_working"):
            return await tracker.end_sessions_for_task(
                task_id, user_id, WorkSessionEndReason.USER_PAUSE.value
            )

    async def list_working(self, user_id: str) -> list[WorkSessionResult]:
        tracker = self._require_tracker()
        with translate_storage_errors("list_working"):
            return await tracker.list_active_for_user(user_id)
