"""Domain exceptions for taskpool.

Defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns. Callers
branch on the concrete class or on error_code; a suppressed rule
evaluation is a normal result, never one of these.
"""

from typing import Any


class TaskpoolException(Exception):
    """Base exception for all taskpool errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging. The layer above this core maps
    these to user-facing responses using message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(TaskpoolException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthorizationException(TaskpoolException):
    """Raised when the user lacks required permissions for the operation."""

    def __init__(
        self,
        resource: str | None = None,
        action: str | None = None,
        message: str = "Permission denied",
    ) -> None:
        """Initialize with optional resource, action, and message.

        Args:
            resource: Optional resource type (e.g. 'task', 'workflow').
            action: Optional action that was attempted (e.g. 'release').
            message: Human-readable message; default used when resource/action omitted.
        """
        if resource and action:
            message = f"Permission denied: {action} on {resource}"
        details: dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, "PERMISSION_DENIED", details)


class ResourceNotFoundException(TaskpoolException):
    """Raised when a requested resource is not found in the caller's scope."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'task', 'workflow', 'rule').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class TaskConflictException(TaskpoolException):
    """Raised when a task transition loses to the stored state.

    Reasons:
        not_available: claim attempted on a task that is not available.
        invalid_transition: release/complete on a task that is not claimed.
        version_mismatch: the expected version is stale.
    """

    def __init__(
        self,
        task_id: str,
        reason: str,
        expected_version: int | None = None,
        current_version: int | None = None,
        current_status: str | None = None,
    ) -> None:
        """Initialize with task id, conflict reason and the observed state.

        Args:
            task_id: Task whose transition failed.
            reason: One of not_available, invalid_transition, version_mismatch.
            expected_version: Version the caller sent.
            current_version: Version found on re-read (if any).
            current_status: Status found on re-read (if any).
        """
        details: dict[str, Any] = {"task_id": task_id, "reason": reason}
        if expected_version is not None:
            details["expected_version"] = expected_version
        if current_version is not None:
            details["current_version"] = current_version
        if current_status is not None:
            details["current_status"] = current_status
        super().__init__(
            f"Task {task_id} conflict: {reason}",
            "TASK_CONFLICT",
            details,
        )
        self.task_id = task_id
        self.reason = reason


class TaskForbiddenException(AuthorizationException):
    """Raised when a user other than the claimant releases or completes a task."""

    def __init__(self, task_id: str, action: str) -> None:
        super().__init__(resource="task", action=action)
        self.details["task_id"] = task_id
        self.task_id = task_id


class WorkflowAlreadyExistsException(TaskpoolException):
    """Raised when a workflow name collides within its (org, project) scope."""

    def __init__(
        self, name: str, org_id: str, project_id: str | None = None
    ) -> None:
        """Initialize with the colliding name and scope.

        Args:
            name: Workflow name that already exists.
            org_id: Organization scope.
            project_id: Project scope, or None for an org-wide workflow.
        """
        scope = f"project {project_id}" if project_id else f"organization {org_id}"
        super().__init__(
            f"Workflow '{name}' already exists in {scope}",
            "WORKFLOW_ALREADY_EXISTS",
            {"name": name, "org_id": org_id, "project_id": project_id},
        )


class RuleEvaluationException(TaskpoolException):
    """Raised when applying a rule fails; the firing is rolled back as a unit.

    Distinct from a suppressed evaluation, which is a normal outcome.
    """

    def __init__(
        self, rule_id: str, origin_type: str, origin_id: str, reason: str
    ) -> None:
        """Initialize with the rule, the origin and the failure reason.

        Args:
            rule_id: Rule that was being applied.
            origin_type: 'task' or 'card'.
            origin_id: Entity whose transition triggered the evaluation.
            reason: Short description of the underlying failure.
        """
        super().__init__(
            f"Rule {rule_id} failed for {origin_type} {origin_id}: {reason}",
            "RULE_EVALUATION_ERROR",
            {
                "rule_id": rule_id,
                "origin_type": origin_type,
                "origin_id": origin_id,
                "reason": reason,
            },
        )
        self.rule_id = rule_id


class DatabaseNotConfiguredException(TaskpoolException):
    """Raised when a session is requested but DATABASE_URL is not set."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )
