"""Project, board and membership exceptions."""

from typing import Any

from .base import BadRequestError, BaseAppException, ConflictError, NotFoundError


class ProjectNotFoundError(NotFoundError):
    """Raised when a project does not exist or the caller has no role on it."""

    def __init__(self, message: str = "Project not found"):
        super().__init__(message=message, error_code="PROJECT_NOT_FOUND")


class ColumnNotFoundError(NotFoundError):
    """Raised when a column is not found."""

    def __init__(self, message: str = "Column not found"):
        super().__init__(message=message, error_code="COLUMN_NOT_FOUND")


class TaskNotFoundError(NotFoundError):
    """Raised when a task is not found."""

    def __init__(self, message: str = "Task not found"):
        super().__init__(message=message, error_code="TASK_NOT_FOUND")


class CommentNotFoundError(NotFoundError):
    def __init__(self, message: str = "Comment not found"):
        super().__init__(message=message, error_code="COMMENT_NOT_FOUND")


class MemberNotFoundError(NotFoundError):
    def __init__(self, message: str = "Member not found"):
        super().__init__(message=message, error_code="MEMBER_NOT_FOUND")


class CollaboratorNotFoundError(NotFoundError):
    def __init__(self, message: str = "Collaborator not found"):
        super().__init__(message=message, error_code="COLLABORATOR_NOT_FOUND")


class ColumnNotEmptyError(BaseAppException):
    """Raised when deleting a column that still holds tasks."""

    def __init__(self, task_count: int):
        super().__init__(
            message="Cannot delete column with tasks. Please move or delete all tasks first.",
            status_code=400,
            error_code="COLUMN_NOT_EMPTY",
            details={"task_count": task_count},
        )


class LastColumnError(BaseAppException):
    """Raised when deleting a project's only remaining column."""

    def __init__(self, message: str = "Cannot delete the last column of a project"):
        super().__init__(message=message, status_code=400, error_code="LAST_COLUMN")


class InvalidReorderError(BadRequestError):
    """Raised when a bulk reorder payload does not describe a valid ordering."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, error_code="INVALID_REORDER", details=details)


class AlreadyMemberError(ConflictError):
    """Raised when the target user already owns or belongs to the project."""

    def __init__(self, message: str = "User is already a member of this project"):
        super().__init__(message=message, error_code="ALREADY_MEMBER")
