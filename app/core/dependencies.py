# app/core/dependencies.py
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import TokenAuthenticator
from app.database import get_db
from app.domains.user.service import UserService
from app.exceptions.base import AuthenticationError
from models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)
auth = TokenAuthenticator()


async def validate_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Validate and decode the bearer token.

    Returns:
        dict: Decoded token payload

    Raises:
        AuthenticationError: If the token is missing, invalid or expired
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authentication token is required")

    return auth.verify_token(credentials.credentials)


async def get_current_user(
    request: Request,
    payload: dict = Depends(validate_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT payload.

    Returns:
        User: Current authenticated user

    Raises:
        AuthenticationError: If the user no longer exists or is inactive
    """
    user_service = UserService(db)
    user = await user_service.get_user_by_token_subject(payload["sub"])

    if not user:
        logger.warning("Token subject %s does not match any user", payload["sub"])
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    # Add user info to request state for logging
    request.state.user_id = user.id

    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Get current user if authenticated, otherwise return None.

    Used for endpoints that work for anonymous callers but personalise the
    response for signed-in ones.
    """
    if not credentials or not credentials.credentials:
        return None

    try:
        payload = auth.verify_token(credentials.credentials)
    except AuthenticationError:
        return None

    user = await UserService(db).get_user_by_token_subject(payload["sub"])
    return user if user and user.is_active else None


__all__ = ["get_db", "get_current_user", "get_optional_user", "validate_token"]
