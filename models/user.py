"""
Provides the User model for the application's database schema.

A user is identified by a unique email address and authenticates with a
password whose bcrypt hash is stored in ``password_hash``. Verification and
password reset flows keep their one-time tokens on the row itself.

Attributes
----------
email : sqlalchemy.Column
    The email address of the user, which must be unique.
full_name : sqlalchemy.Column
    Display name shown to other project participants.
username : sqlalchemy.Column
    Optional unique handle.
email_verified : sqlalchemy.Column
    Whether the email address has been confirmed.
is_active : sqlalchemy.Column
    A boolean indicating if the user is active. Defaults to `True`.
"""

from sqlalchemy import Boolean, Column, DateTime, String

from .base import BaseModel


class User(BaseModel):
    """
    Represents a user entity in the application.

    :ivar email: Email address of the user. It must be unique.
    :type email: str
    :ivar password_hash: bcrypt hash of the user's password.
    :type password_hash: str
    :ivar full_name: Human readable name.
    :type full_name: str
    :ivar username: Username of the user. This is optional.
    :type username: str
    :ivar email_verified: Whether the email address was verified.
    :type email_verified: bool
    :ivar is_active: Indicates whether the user account is active.
    :type is_active: bool
    """

    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    username = Column(String(50), unique=True)
    avatar_url = Column(String(500))
    is_active = Column(Boolean, default=True, nullable=False)

    email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String(255), index=True)
    email_verification_expires = Column(DateTime)
    password_reset_token = Column(String(255), index=True)
    password_reset_expires = Column(DateTime)

    @property
    def display_name(self) -> str:
        return self.username or self.full_name or self.email.split("@")[0]
