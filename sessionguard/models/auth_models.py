# sessionguard/models/auth_models.py
"""
Request models of the auth endpoints and the contract of the credential
backend (user store, password hashing, outgoing mail) that lives outside
this package.
"""

from typing import Optional, Protocol

from pydantic import BaseModel, Field


class AuthenticatedUser(BaseModel):
    id: str
    email: str
    is_global_admin: bool = False
    email_verified: bool = False
    has_staff_role: bool = False


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class PasswordForgotRequest(BaseModel):
    email: str = Field(min_length=1)


class PasswordResetRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8)


class CredentialBackend(Protocol):
    """What the auth routes need from the user store"""

    async def authenticate(self, email: str, password: str) -> Optional[AuthenticatedUser]:
        """The user for valid credentials, else None"""
        ...

    async def request_password_reset(self, email: str) -> None:
        """Issue and send a reset token; silently ignore unknown emails"""
        ...

    async def reset_password(self, token: str, new_password: str) -> Optional[str]:
        """Consume a reset token; the user id whose password changed, else None"""
        ...

    async def request_email_verification(self, user_id: str) -> None:
        ...
