"""Authentication API controller."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.user.service import UserService
from app.schemas.base import ResponseSchema
from app.schemas.user import (
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenRequest,
    TokenResponse,
    UserResponse,
)
from models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])

PASSWORD_RESET_MESSAGE = (
    "If an account exists with this email, you will receive password reset instructions."
)


@router.post("/register", response_model=ResponseSchema, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create an account and send the verification email."""
    user_service = UserService(db)
    user, email_result = await user_service.register(
        payload.email, payload.password, payload.full_name
    )

    return ResponseSchema(
        status="success",
        message="User created successfully. Please check your email to verify your account.",
        data={
            "user": UserResponse.model_validate(user).model_dump(),
            "requires_verification": True,
            "email_sent": email_result.success,
            "email_preview": email_result.preview_url if email_result.is_test_mode else None,
        },
    )


@router.post("/verify-email", response_model=ResponseSchema)
async def verify_email(payload: TokenRequest, db: AsyncSession = Depends(get_db)):
    """Confirm an email address and sign the user in."""
    user_service = UserService(db)
    user = await user_service.verify_email(payload.token)

    return ResponseSchema(
        status="success",
        message="Email verified successfully",
        data=TokenResponse(
            access_token=user_service.issue_token(user),
            user=UserResponse.model_validate(user),
        ).model_dump(),
    )


@router.post("/resend-verification", response_model=ResponseSchema)
async def resend_verification(payload: EmailRequest, db: AsyncSession = Depends(get_db)):
    user_service = UserService(db)
    result = await user_service.resend_verification(payload.email)

    return ResponseSchema(
        status="success" if result.success else "error",
        message="Verification email sent"
        if result.success
        else "Failed to send verification email",
        data={"email_preview": result.preview_url if result.is_test_mode else None},
    )


@router.post("/login", response_model=ResponseSchema)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange email and password for a bearer token."""
    user_service = UserService(db)
    user = await user_service.authenticate(payload.email, payload.password)

    return ResponseSchema(
        status="success",
        message="Login successful",
        data=TokenResponse(
            access_token=user_service.issue_token(user),
            user=UserResponse.model_validate(user),
        ).model_dump(),
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    return UserResponse.model_validate(current_user)


@router.post("/request-password-reset", response_model=ResponseSchema)
async def request_password_reset(payload: EmailRequest, db: AsyncSession = Depends(get_db)):
    """Always answers the same way so account existence is not revealed."""
    user_service = UserService(db)
    result = await user_service.request_password_reset(payload.email)
    if result is not None and not result.success:
        logger.warning("Password reset email for %s was not delivered", payload.email)

    return ResponseSchema(status="success", message=PASSWORD_RESET_MESSAGE, data=None)


@router.post("/reset-password", response_model=ResponseSchema)
async def reset_password(payload: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    user_service = UserService(db)
    user = await user_service.reset_password(payload.token, payload.password)

    return ResponseSchema(
        status="success",
        message="Password reset successful",
        data=TokenResponse(
            access_token=user_service.issue_token(user),
            user=UserResponse.model_validate(user),
        ).model_dump(),
    )
