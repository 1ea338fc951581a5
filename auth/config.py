"""Authentication configuration."""

from pydantic import BaseModel, Field, model_validator


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (seconds for access tokens,
    hours for sessions) to make configuration intuitive.
    """

    # Access token settings
    access_token_lifetime_seconds: int = Field(
        default=3600,
        description="Access token lifetime, independent of remember-me",
        ge=60,
        le=86400,
    )

    # Session (refresh token) settings
    session_duration_hours: int = Field(
        default=24,
        description="Refresh token lifetime for a normal login",
        ge=1,
        le=720,
    )
    remember_me_duration_hours: int = Field(
        default=720,  # 30 days
        description="Refresh token lifetime when remember-me is set",
        ge=1,
        le=2160,
    )

    # Password hashing
    password_hash_rounds: int = Field(
        default=12,
        description="bcrypt work factor (log2 of iterations)",
        ge=4,
        le=16,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL for activation and reset links",
    )
    app_name: str = Field(
        default="Accounts",
        description="Application name for emails",
    )
    activation_path: str = Field(
        default="/auth/activate",
        description="Path the activation code is appended to",
    )
    password_reset_path: str = Field(
        default="/password/reset",
        description="Frontend path the reset token is appended to",
    )
    secure_cookies: bool = Field(
        default=True,
        description="Send the refresh cookie over HTTPS only",
    )

    @model_validator(mode="after")
    def _remember_me_not_shorter(self) -> "AuthConfig":
        if self.remember_me_duration_hours < self.session_duration_hours:
            raise ValueError(
                "remember_me_duration_hours must be >= session_duration_hours"
            )
        return self

    def session_duration(self, remember_me: bool) -> int:
        """Refresh token duration in hours for a login."""
        if remember_me:
            return self.remember_me_duration_hours
        return self.session_duration_hours

    def activation_url(self, code: str) -> str:
        return f"{self.app_base_url.rstrip('/')}{self.activation_path}/{code}"

    def password_reset_url(self, token: str) -> str:
        return f"{self.app_base_url.rstrip('/')}{self.password_reset_path}/{token}"
