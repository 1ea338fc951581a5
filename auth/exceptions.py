"""Typed exceptions for auth failures.

Five kinds map one-to-one onto HTTP statuses (see api.errors). Concrete
errors subclass exactly one kind so handlers can catch either level.
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


# Kinds


class ConflictError(AuthError):
    """Resource already exists or is already in its terminal state."""


class NotFoundError(AuthError):
    """Referenced entity does not exist."""


class UnauthorizedError(AuthError):
    """Credentials or token rejected."""


class ForbiddenError(AuthError):
    """Identity is known but the account state disallows the operation."""


class ServiceUnavailableError(AuthError):
    """Backing store failed or timed out. Safe for the client to retry."""

    def __init__(self, message: str = "Service temporarily unavailable", retry_after_seconds: int = 5):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)


# Conflict


class UserAlreadyExistsError(ConflictError):
    """Email is already registered to another user."""


class AlreadyActivatedError(ConflictError):
    """Account behind an activation code is already active."""


# Not found


class UserNotFoundError(NotFoundError):
    """
    Email or id not associated with any user.

    Note: the login flow surfaces this as-is; the HTTP layer decides how
    much to reveal.
    """


class ActivationCodeNotFoundError(NotFoundError):
    """No live salt matches the activation code."""


class ResetTokenNotFoundError(NotFoundError):
    """No password reset row matches the token."""


# Unauthorized


class InvalidCredentialsError(UnauthorizedError):
    """Password does not match the stored hash."""


class InvalidTokenError(UnauthorizedError):
    """
    Token is malformed, has a bad signature, or was already redeemed.

    Used for both access tokens and refresh tokens.
    """


class TokenExpiredError(InvalidTokenError):
    """Token signature is valid but its `exp` has passed.

    Kept distinct so clients can run the refresh flow instead of a hard logout.
    """


class SessionRevokedError(UnauthorizedError):
    """The salt embedded in the token no longer exists (logout, reset, rotation)."""


# Forbidden


class UserInactiveError(ForbiddenError):
    """User account is not activated yet. Login not permitted."""
