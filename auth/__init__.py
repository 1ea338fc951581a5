"""Authentication and session lifecycle modules.

HTTP-facing pieces (auth.security_middleware, auth.api) depend on the api
package and are imported from their modules directly.
"""

from auth.exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ServiceUnavailableError,
    UserAlreadyExistsError,
    AlreadyActivatedError,
    UserNotFoundError,
    ActivationCodeNotFoundError,
    ResetTokenNotFoundError,
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    SessionRevokedError,
    UserInactiveError,
)
from auth.types import (
    User,
    UserProfile,
    Salt,
    PasswordReset,
    RefreshToken,
    TokenPair,
    AuthenticatedUser,
    AuthContext,
)
from auth.config import AuthConfig
from auth.repositories import (
    DeleteMode,
    UserRepository,
    SaltRepository,
    PasswordResetRepository,
    RefreshTokenRepository,
)
from auth.tokens import TokenCodec
from auth.passwords import PasswordHasher
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.service import AuthService, RegistrationResult, ResetTokenResult
