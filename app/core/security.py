"""Security related functions."""

import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from app.core.config import settings
from app.exceptions.base import AuthenticationError

# bcrypt only looks at the first 72 bytes of the secret
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash
        return False


def generate_token() -> str:
    """Opaque one-time token used for invitations, links, verification and resets."""
    return secrets.token_hex(32)


class TokenAuthenticator:
    """
    Issues and verifies the API's own bearer tokens.

    Tokens are HS256 JWTs signed with ``settings.secret_key``. The ``sub``
    claim carries the user id and ``email`` is included for convenience.

    :ivar secret_key: The secret key used to sign and verify tokens.
    :type secret_key: str
    :ivar algorithm: JWT signing algorithm.
    :type algorithm: str
    """

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm

    def create_access_token(
        self, user_id: UUID, email: str, expires_delta: timedelta | None = None
    ) -> str:
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
        payload = {
            "sub": str(user_id),
            "email": email,
            "iat": now,
            "exp": expire,
            "type": "access",
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict:
        """
        Decode and validate a bearer token.

        :param token: The encoded JWT.
        :return: The decoded payload.
        :raises AuthenticationError: If the token is expired, tampered with or malformed.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise AuthenticationError("Authentication token has expired") from e
        except InvalidTokenError as e:
            raise AuthenticationError("Invalid authentication token") from e

        if payload.get("type") != "access" or not payload.get("sub"):
            raise AuthenticationError("Invalid token payload")
        return payload
