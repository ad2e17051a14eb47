from __future__ import annotations


class TaskError(Exception):
    """Base class for errors raised by the task service."""

    status_code = 500
    default_detail = "Internal Server Error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class TaskValidationError(TaskError):
    """Malformed or disallowed input. Raised before anything is written."""

    status_code = 400
    default_detail = "Invalid request"


class TaskNotFound(TaskError):
    """No task with this id is owned by the requester."""

    status_code = 404
    default_detail = "Task not found"


class StoreError(TaskError):
    """The underlying store failed."""

    status_code = 500
