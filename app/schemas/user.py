"""User and authentication schemas for request/response validation."""

import re
from typing import Optional
from uuid import UUID

from pydantic import AnyHttpUrl, EmailStr, Field, field_validator

from .base import BaseModelSchema, BaseSchema

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def clean_full_name(v: str) -> str:
    """Strip a display name and refuse line breaks and other control characters."""
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Full name must be at least 2 characters")
    if CONTROL_CHARS.search(v):
        raise ValueError("Full name cannot contain control characters")
    return v


class RegisterRequest(BaseSchema):
    """Schema for account registration."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=2, max_length=255)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        return clean_full_name(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class EmailRequest(BaseSchema):
    """Body carrying only an email (resend verification, password reset)."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class TokenRequest(BaseSchema):
    token: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseSchema):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6, max_length=128)


class UserSummary(BaseSchema):
    """Public subset of a user shown next to projects, tasks and comments."""

    id: UUID
    email: str
    full_name: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class UserResponse(BaseModelSchema):
    """Schema for the authenticated user's own profile."""

    email: str
    full_name: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    email_verified: bool
    is_active: bool


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UpdateNameRequest(BaseSchema):
    full_name: str = Field(..., min_length=2, max_length=255)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        return clean_full_name(v)


class UpdateUsernameRequest(BaseSchema):
    username: str = Field(..., min_length=3, max_length=50)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_PATTERN.fullmatch(v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v


class ChangePasswordRequest(BaseSchema):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class UpdateAvatarRequest(BaseSchema):
    avatar_url: AnyHttpUrl
