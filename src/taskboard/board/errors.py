"""Typed failures for board operations.

Every error carries a stable ``code`` and the HTTP ``status_code`` the API
layer answers with, so failures reach clients as typed results rather than
opaque server errors.
"""

from __future__ import annotations

from typing import Any, Optional


class BoardError(Exception):
    code = "BOARD_ERROR"
    status_code = 500

    def __init__(self, message: str, *, details: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BoardError):
    """Malformed request; rejected before any task is read."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidRequest(ValidationError):
    code = "INVALID_REQUEST"


class InvalidColumn(InvalidRequest):
    code = "INVALID_COLUMN"


class InvalidIndex(InvalidRequest):
    code = "INVALID_INDEX"


class NotFoundError(BoardError):
    code = "NOT_FOUND"
    status_code = 404


class ProjectNotFound(NotFoundError):
    code = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class TaskNotFound(NotFoundError):
    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str, project_id: Optional[str] = None) -> None:
        where = f" in project {project_id}" if project_id else ""
        super().__init__(f"Task {task_id} not found{where}")
        self.task_id = task_id


class StaleMove(BoardError):
    """The task is no longer in the column the caller believed it was in."""

    code = "STALE_MOVE"
    status_code = 409

    def __init__(self, task_id: str, expected_column: str, actual_column: str) -> None:
        super().__init__(
            f"Task {task_id} is in column '{actual_column}', not '{expected_column}'; "
            "it was moved concurrently"
        )
        self.task_id = task_id
        self.expected_column = expected_column
        self.actual_column = actual_column


class VersionConflict(BoardError):
    """A conditional batch write found a column version it did not expect."""

    code = "VERSION_CONFLICT"
    status_code = 409

    def __init__(self, column_key: str, expected: int, actual: int) -> None:
        super().__init__(f"Column {column_key} is at version {actual}, expected {expected}")
        self.column_key = column_key
        self.expected = expected
        self.actual = actual


class StorageFailure(BoardError):
    """The batch write was not confirmed; column state must be re-fetched."""

    code = "STORAGE_FAILURE"
    status_code = 503
