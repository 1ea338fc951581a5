"""Pydantic models for auth domain."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


PASSWORD_MIN_LENGTH = 6

_IMAGE_DATA_URI = re.compile(r"^data:image/(png|jpeg|jpg|gif|webp);base64,[A-Za-z0-9+/=]+$")


# =============================================================================
# STORED ENTITIES
# =============================================================================


class User(BaseModel):
    """A registered user of the system."""

    id: UUID
    name: str
    email: EmailStr
    password_hash: str = Field(..., repr=False)
    avatar_url: str | None = None
    is_activated: bool  # Required - fail closed, no default
    created_at: datetime

    model_config = {"from_attributes": True}

    def profile(self) -> "UserProfile":
        """Public subset of the user. Never carries the password hash."""
        return UserProfile(
            name=self.name,
            email=self.email,
            avatar=self.avatar_url or "",
            is_activated=self.is_activated,
            created_at=self.created_at,
        )


class UserProfile(BaseModel):
    """User fields safe to hand to clients."""

    name: str
    email: EmailStr
    avatar: str
    is_activated: bool
    created_at: datetime


class Salt(BaseModel):
    """
    A live authentication context bound to a user.

    The random value is embedded in every token issued for the session.
    Deleting the row revokes all of them.
    """

    id: UUID
    salt: str
    user_id: UUID
    created_at: datetime


class PasswordReset(BaseModel):
    """A password reset token awaiting redemption."""

    id: UUID
    email: EmailStr
    token: str
    created_at: datetime


class RefreshToken(BaseModel):
    """Durable side of a refresh token. Redeemable once."""

    id: UUID
    user_id: UUID
    expires_at: datetime
    created_at: datetime


# =============================================================================
# TOKENS
# =============================================================================


class AccessClaims(BaseModel):
    """Claims carried by an access token."""

    user_id: UUID
    salt: str


class RefreshClaims(BaseModel):
    """Claims carried by a refresh token."""

    refresh_token_id: UUID
    duration: int = Field(..., description="Session duration in hours")
    salt: str


class TokenPair(BaseModel):
    """Freshly issued access/refresh token pair."""

    access_token: str
    refresh_token: str
    lifetime: int = Field(..., description="Access token lifetime in seconds")
    duration: int = Field(..., description="Refresh token lifetime in hours")


class AuthenticatedUser(BaseModel):
    """Result of a successful login."""

    tokens: TokenPair
    profile: UserProfile


class AuthContext(BaseModel):
    """Identity attached to a request by the verification gate."""

    user_id: UUID
    salt: str


# =============================================================================
# REQUEST PAYLOADS
# =============================================================================


class _PasswordConfirmation(BaseModel):
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    password_confirmation: str

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.password_confirmation:
            raise ValueError("password_confirmation does not match password")
        return self


class RegisterRequest(_PasswordConfirmation):
    """Request payload for registration."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr


class LoginRequest(BaseModel):
    """Request payload for login."""

    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    remember_me: bool


class ForgotPasswordRequest(BaseModel):
    """Request payload for a password reset link."""

    email: EmailStr


class ResetPasswordRequest(_PasswordConfirmation):
    """Request payload for redeeming a reset token."""

    token: str = Field(..., min_length=1)


class UpdateUserRequest(BaseModel):
    """Request payload for profile update."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr


class UpdatePasswordRequest(_PasswordConfirmation):
    """Request payload for an authenticated password change."""


class AvatarRequest(BaseModel):
    """Request payload for avatar upload (base64 data URI)."""

    file: str

    @field_validator("file")
    @classmethod
    def _is_image_data_uri(cls, value: str) -> str:
        if not _IMAGE_DATA_URI.match(value):
            raise ValueError("file must be a base64 encoded png, jpeg, gif or webp data URI")
        return value
