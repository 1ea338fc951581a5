"""Authentication service - orchestrates the account and session lifecycle."""

from dataclasses import dataclass
from uuid import UUID

from auth.config import AuthConfig
from auth.exceptions import (
    ActivationCodeNotFoundError,
    AlreadyActivatedError,
    ForbiddenError,
    InvalidCredentialsError,
    ResetTokenNotFoundError,
    UnauthorizedError,
    UserAlreadyExistsError,
    UserInactiveError,
    UserNotFoundError,
)
from auth.passwords import PasswordHasher
from auth.repositories import DeleteMode, PasswordResetRepository, SaltRepository, UserRepository
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionManager, generate_salt
from auth.types import AuthenticatedUser, TokenPair, UserProfile


@dataclass
class RegistrationResult:
    """Result of registration. The salt doubles as the activation code."""

    user_id: UUID
    email: str
    salt: str


@dataclass
class ResetTokenResult:
    """Result of a reset-link request."""

    email: str
    token: str


def _normalize_email(email: str) -> str:
    return email.lower().strip()


class AuthService:
    """Orchestrates registration, activation, login, refresh, reset and logout.

    Never sends mail and never touches file storage: results carry whatever
    the HTTP layer needs to do that itself. No retries; every failure is
    raised as a typed AuthError.
    """

    def __init__(
        self,
        config: AuthConfig,
        users: UserRepository,
        salts: SaltRepository,
        password_resets: PasswordResetRepository,
        session_manager: SessionManager,
        password_hasher: PasswordHasher,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._users = users
        self._salts = salts
        self._password_resets = password_resets
        self._session_manager = session_manager
        self._password_hasher = password_hasher
        self._security_logger = security_logger

    # -------------------------------------------------------------------------
    # Registration & activation
    # -------------------------------------------------------------------------

    def register_user(self, name: str, email: str, password: str) -> RegistrationResult:
        """Create an inactive user and its activation salt.

        Raises:
            UserAlreadyExistsError: If the email is already registered.
        """
        email = _normalize_email(email)

        if self._users.is_registered(email):
            raise UserAlreadyExistsError(f"User with email '{email}' already exists.")

        user = self._users.create(
            name=name,
            email=email,
            password_hash=self._password_hasher.hash(password),
            is_activated=False,
        )

        salt = generate_salt()
        self._salts.create(salt=salt, user_id=user.id)

        self._security_logger.log(SecurityEvent.USER_REGISTERED, email=email, user_id=user.id)

        return RegistrationResult(user_id=user.id, email=email, salt=salt)

    def activate_user(self, code: str) -> UserProfile:
        """Activate the account owning the activation salt, then burn the salt.

        Raises:
            ActivationCodeNotFoundError: No salt matches the code.
            AlreadyActivatedError: Account is already active.
        """
        salt = self._salts.find_by_salt(code)
        if salt is None:
            self._security_logger.log(
                SecurityEvent.ACTIVATION_FAILED,
                details={"reason": "code_not_found"},
            )
            raise ActivationCodeNotFoundError(f"Activation code '{code}' does not exist.")

        user = self._users.find_by_id(salt.user_id)
        if user is None:
            raise ActivationCodeNotFoundError(f"Activation code '{code}' does not exist.")

        if user.is_activated:
            self._security_logger.log(
                SecurityEvent.ACTIVATION_FAILED,
                email=user.email,
                user_id=user.id,
                details={"reason": "already_activated"},
            )
            raise AlreadyActivatedError(f"User with email '{user.email}' is already activated.")

        user = self._users.update("id", user.id, {"is_activated": True})

        # Single-use: the activation salt must never act as a session salt
        self._salts.delete("id", salt.id)

        self._security_logger.log(SecurityEvent.USER_ACTIVATED, email=user.email, user_id=user.id)

        return user.profile()

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def authenticate_user(self, email: str, password: str, remember_me: bool) -> AuthenticatedUser:
        """Check credentials and open a session.

        Raises:
            UserNotFoundError: Unknown email.
            UserInactiveError: Account not activated.
            InvalidCredentialsError: Password mismatch.
        """
        email = _normalize_email(email)

        user = self._users.find_by_email(email)
        if user is None:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                details={"reason": "user_not_found"},
            )
            raise UserNotFoundError(f"User with email '{email}' does not exist.")

        if not user.is_activated:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                user_id=user.id,
                details={"reason": "user_inactive"},
            )
            raise UserInactiveError(f"User with email '{email}' is not activated yet.")

        if not self._password_hasher.verify(password, user.password_hash):
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                user_id=user.id,
                details={"reason": "invalid_password"},
            )
            raise InvalidCredentialsError("Unauthorised. User password entered is incorrect.")

        # A failed audit write must leave no session behind
        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=email,
            user_id=user.id,
            details={"remember_me": remember_me},
        )

        duration = self._config.session_duration(remember_me)
        tokens = self._session_manager.issue_token_pair(user.id, duration)

        return AuthenticatedUser(tokens=tokens, profile=user.profile())

    def refresh_token(self, refresh_token: str) -> TokenPair:
        """Redeem a refresh token for a new pair, rotating salt and row.

        Flow:
        1. Verify signature and expiry
        2. Require a live salt
        3. Consume the refresh row (exactly one caller wins)
        4. Delete the old salt
        5. Issue a new pair with the same duration

        Raises:
            TokenExpiredError: Refresh token expired.
            InvalidTokenError: Bad token, or already redeemed.
            SessionRevokedError: Salt deleted (logout, reset, earlier rotation).
        """
        try:
            claims = self._session_manager.verify_refresh_token(refresh_token)
            row = self._session_manager.redeem_refresh_token(claims)
        except UnauthorizedError as e:
            self._security_logger.log(
                SecurityEvent.REFRESH_REJECTED,
                details={"reason": type(e).__name__},
            )
            raise

        self._session_manager.revoke_salt(claims.salt)

        tokens = self._session_manager.issue_token_pair(row.user_id, claims.duration)

        self._security_logger.log(SecurityEvent.TOKEN_REFRESHED, user_id=row.user_id)

        return tokens

    def logout_user(self, salt: str, refresh_token: str) -> None:
        """Revoke the caller's session.

        salt comes from the already-verified access token. The refresh token
        is only decoded, not verified: the access-token gate has already
        authenticated the caller.

        Raises:
            InvalidTokenError: Refresh token is structurally malformed.
            ForbiddenError: Refresh token belongs to a different session.
        """
        claims = self._session_manager.read_refresh_token_unverified(refresh_token)
        if claims.salt != salt:
            raise ForbiddenError("Logout failed. Refresh token does not belong to this session.")

        self._session_manager.revoke_salt(salt)
        self._session_manager.revoke_refresh_token(claims.refresh_token_id)

        self._security_logger.log(
            SecurityEvent.SESSION_REVOKED,
            details={"refresh_token_id": str(claims.refresh_token_id)},
        )

    # -------------------------------------------------------------------------
    # Password reset
    # -------------------------------------------------------------------------

    def create_reset_token(self, email: str) -> ResetTokenResult:
        """Create a reset token, superseding any earlier one for the email.

        Raises:
            UserNotFoundError: Email not registered.
        """
        email = _normalize_email(email)

        if not self._users.is_registered(email):
            raise UserNotFoundError(f"User with email '{email}' does not exist.")

        self._password_resets.delete("email", email, DeleteMode.MANY)

        token = generate_salt()
        self._password_resets.create(email=email, token=token)

        self._security_logger.log(SecurityEvent.PASSWORD_RESET_REQUESTED, email=email)

        return ResetTokenResult(email=email, token=token)

    def reset_password(self, token: str, password: str) -> str:
        """Set a new password from a reset token and kill every session.

        Steps are independent single-row/multi-row writes; each is safe to
        repeat, so a crash part-way leaves nothing a retry cannot finish.

        Returns:
            Email of the account that was reset.

        Raises:
            ResetTokenNotFoundError: No reset row matches the token.
        """
        reset = self._password_resets.find_by_token(token)
        if reset is None:
            raise ResetTokenNotFoundError(f"Password reset token '{token}' does not exist.")

        user = self._users.update(
            "email",
            reset.email,
            {"password_hash": self._password_hasher.hash(password)},
        )

        self._password_resets.delete("email", reset.email, DeleteMode.MANY)
        self._session_manager.revoke_all(user.id)

        self._security_logger.log(SecurityEvent.PASSWORD_RESET, email=user.email, user_id=user.id)

        return user.email

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    def get_user(self, user_id: UUID) -> UserProfile:
        """Raises UserNotFoundError if the user is gone."""
        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User with id '{user_id}' does not exist.")
        return user.profile()

    def get_avatar_url(self, user_id: UUID) -> str | None:
        """Current avatar URL, so the caller can delete the stored file."""
        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User with id '{user_id}' does not exist.")
        return user.avatar_url

    def update_user(self, user_id: UUID, name: str, email: str) -> UserProfile:
        """Update name and email.

        Raises:
            UserAlreadyExistsError: Email belongs to another user.
            UserNotFoundError: User is gone.
        """
        email = _normalize_email(email)

        existing = self._users.find_by_email(email)
        if existing is not None and existing.id != user_id:
            raise UserAlreadyExistsError(f"User with email '{email}' already exists.")

        user = self._users.update("id", user_id, {"name": name, "email": email})

        self._security_logger.log(SecurityEvent.PROFILE_UPDATED, email=user.email, user_id=user.id)

        return user.profile()

    def update_avatar(self, user_id: UUID, url: str) -> UserProfile:
        user = self._users.update("id", user_id, {"avatar_url": url})
        return user.profile()

    def update_password(self, user_id: UUID, password: str) -> UserProfile:
        """Change password for an authenticated user.

        Existing sessions stay alive, unlike reset_password.
        """
        user = self._users.update(
            "id",
            user_id,
            {"password_hash": self._password_hasher.hash(password)},
        )

        self._security_logger.log(SecurityEvent.PASSWORD_CHANGED, email=user.email, user_id=user.id)

        return user.profile()
