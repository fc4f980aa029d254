"""Application exceptions.

Validation failures carry field-level errors and are returned to the caller.
Not-found and store failures are raised by the repository; the HTTP layer maps
them to responses in ``app.core.exception_handlers``.
"""

from typing import Any


class TaskManagerException(Exception):
    """Base exception for the task manager.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(TaskManagerException):
    """Raised when input fails schema validation."""

    def __init__(self, field_errors: dict[str, list[str]]) -> None:
        self.field_errors = field_errors
        super().__init__(
            "Validation failed", "VALIDATION_ERROR", {"fields": field_errors}
        )


class TaskNotFoundError(TaskManagerException):
    """Raised when a write targets a task id that does not exist."""

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(
            f"Task with id {task_id} not found",
            "RESOURCE_NOT_FOUND",
            {"task_id": task_id},
        )


class StoreError(TaskManagerException):
    """Raised when the persistence layer fails.

    The original driver error is chained as ``__cause__`` and never exposed
    through ``message``.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            "The task store is unavailable. Please try again.",
            "STORE_ERROR",
            {"operation": operation},
        )


class TaskListFetchError(TaskManagerException):
    """Raised when the cached task list endpoint answers with an error status."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(
            f"Failed to load cached tasks (status {status_code})",
            "FETCH_ERROR",
            {"status_code": status_code},
        )
