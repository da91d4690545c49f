# ruff: noqa: D107
"""Invitation lifecycle exceptions.

Conflict errors carry a hint in ``details`` telling the client whether it
should redirect (e.g. to the project or to registration) or retry.
"""

from typing import Any

from .base import BaseAppException, ConflictError, ExternalServiceError, NotFoundError


class InvitationNotFoundError(NotFoundError):
    """Raised when an invitation token or id is unknown."""

    def __init__(self, message: str = "Invitation not found"):
        super().__init__(message=message, error_code="INVITATION_NOT_FOUND")


class InvitationLinkNotFoundError(NotFoundError):
    """Raised when a share link token is unknown or the link was deactivated."""

    def __init__(self, message: str = "Invalid or inactive invitation link"):
        super().__init__(message=message, error_code="INVITATION_LINK_NOT_FOUND")


class InvitationAlreadyAcceptedError(ConflictError):
    """Raised when accepting an invitation that was already accepted."""

    def __init__(self, project_id: Any = None):
        super().__init__(
            message="Invitation already accepted",
            error_code="INVITATION_ALREADY_ACCEPTED",
            details={"redirect": True, "project_id": str(project_id) if project_id else None},
        )


class InvitationNotPendingError(ConflictError):
    """Raised when acting on an invitation that is no longer pending."""

    def __init__(self, status: str):
        super().__init__(
            message=f"Invitation is {status}",
            error_code="INVITATION_NOT_PENDING",
            details={"status": status},
        )


class InvitationExpiredError(BaseAppException):
    """Raised when an invitation or link has passed its expiry."""

    def __init__(self, message: str = "Invitation has expired"):
        super().__init__(message=message, status_code=410, error_code="INVITATION_EXPIRED")


class RegistrationRequiredError(ConflictError):
    """Raised when the invited email has no account yet."""

    def __init__(self, email: str):
        super().__init__(
            message="Please register an account with this email before accepting the invitation",
            error_code="REGISTRATION_REQUIRED",
            details={"redirect": "register", "email": email},
        )


class InvitationRetryError(ConflictError):
    """Raised when a concurrent acceptance won the race; the client may retry."""

    def __init__(self, message: str = "Invitation is being processed, please retry"):
        super().__init__(message=message, error_code="INVITATION_RETRY", details={"retry": True})


class DuplicateInvitationError(ConflictError):
    def __init__(self, message: str = "An invitation has already been sent to this email"):
        super().__init__(message=message, error_code="DUPLICATE_INVITATION")


class InvitationDeliveryError(ExternalServiceError):
    """Raised when the invitation email could not be sent; the invitation was discarded."""

    def __init__(self, reason: str | None = None):
        super().__init__(
            message="Failed to send invitation email",
            error_code="INVITATION_DELIVERY_FAILED",
            details={"reason": reason} if reason else None,
        )
