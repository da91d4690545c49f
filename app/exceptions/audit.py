"""Audit log exceptions."""

from .base import NotFoundError


class AuditLogNotFoundError(NotFoundError):
    def __init__(self, message: str = "Audit log not found"):
        super().__init__(message=message, error_code="AUDIT_LOG_NOT_FOUND")
