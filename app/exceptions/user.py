"""Account and authentication exceptions."""

from .base import (
    AppPermissionError,
    AuthenticationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
)


class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message=message, error_code="USER_NOT_FOUND")


class EmailAlreadyRegisteredError(ConflictError):
    def __init__(self, message: str = "An account with this email already exists"):
        super().__init__(message=message, error_code="EMAIL_ALREADY_REGISTERED")


class UsernameTakenError(ConflictError):
    def __init__(self, message: str = "Username is already taken"):
        super().__init__(message=message, error_code="USERNAME_TAKEN")


class InvalidCredentialsError(AuthenticationError):
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message=message, error_code="INVALID_CREDENTIALS")


class EmailNotVerifiedError(AppPermissionError):
    """Raised on login before the email address was confirmed."""

    def __init__(self, email: str):
        super().__init__(
            message="Please verify your email address before logging in",
            details={"email_not_verified": True, "email": email},
        )


class InvalidOrExpiredTokenError(BadRequestError):
    """Raised for an unknown or expired verification/reset token."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message=message, error_code="INVALID_TOKEN")
