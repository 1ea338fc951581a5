"""Session lifecycle: token-pair issuance, verification and revocation.

A session is a salt row plus a refresh token row. The salt's random value
is embedded in both tokens of the pair; the refresh row's id is embedded in
the refresh token. Deleting the salt kills the session everywhere, deleting
the refresh row makes the refresh token unredeemable.
"""

import secrets
from datetime import timedelta
from typing import TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError, SessionRevokedError, TokenExpiredError
from auth.repositories import DeleteMode, RefreshTokenRepository, SaltRepository
from auth.tokens import TokenCodec
from auth.types import AccessClaims, AuthContext, RefreshClaims, RefreshToken, TokenPair
from utils.timezone import now_utc

ClaimsT = TypeVar("ClaimsT", bound=BaseModel)

SALT_BYTES = 64


def generate_salt() -> str:
    """Cryptographically random hex string used as salt, activation code or reset token."""
    return secrets.token_hex(SALT_BYTES)


def _parse_claims(model: type[ClaimsT], claims: dict) -> ClaimsT:
    try:
        return model.model_validate(claims)
    except ValidationError as e:
        raise InvalidTokenError("Token claims are malformed") from e


class SessionManager:
    """Issues, verifies and revokes salted token pairs."""

    def __init__(
        self,
        config: AuthConfig,
        codec: TokenCodec,
        salts: SaltRepository,
        refresh_tokens: RefreshTokenRepository,
    ):
        self._config = config
        self._codec = codec
        self._salts = salts
        self._refresh_tokens = refresh_tokens

    def issue_token_pair(self, user_id: UUID, duration_hours: int) -> TokenPair:
        """Open a new session for user and sign its tokens.

        The access token lifetime is fixed by config; only the refresh token
        (and so the session) follows duration_hours.
        """
        salt = generate_salt()
        self._salts.create(salt=salt, user_id=user_id)

        row = self._refresh_tokens.create(
            user_id=user_id,
            expires_at=now_utc() + timedelta(hours=duration_hours),
        )

        refresh_token = self._codec.sign(
            {"refresh_token_id": str(row.id), "duration": duration_hours, "salt": salt},
            ttl_seconds=duration_hours * 3600,
        )
        access_token = self._codec.sign(
            {"user_id": str(user_id), "salt": salt},
            ttl_seconds=self._config.access_token_lifetime_seconds,
        )

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            lifetime=self._config.access_token_lifetime_seconds,
            duration=duration_hours,
        )

    def verify_access_token(self, token: str) -> AuthContext:
        """Verification gate for authenticated requests.

        Raises:
            TokenExpiredError: Signature fine, token expired.
            InvalidTokenError: Bad signature or malformed claims.
            SessionRevokedError: Salt no longer exists.
        """
        claims = _parse_claims(AccessClaims, self._codec.verify(token))

        if not self._salts.is_valid(claims.salt):
            raise SessionRevokedError("Session has been revoked")

        return AuthContext(user_id=claims.user_id, salt=claims.salt)

    def verify_refresh_token(self, token: str) -> RefreshClaims:
        """Check signature, expiry and salt liveness of a refresh token."""
        claims = _parse_claims(RefreshClaims, self._codec.verify(token))

        if not self._salts.is_valid(claims.salt):
            raise SessionRevokedError("Session has been revoked")

        return claims

    def redeem_refresh_token(self, claims: RefreshClaims) -> RefreshToken:
        """Consume the refresh row. A second redemption finds nothing.

        Raises:
            InvalidTokenError: Row already consumed (replay or lost race).
            TokenExpiredError: Row outlived its expiry.
        """
        row = self._refresh_tokens.find_by_id_and_delete(claims.refresh_token_id)
        if row is None:
            raise InvalidTokenError("Refresh token has already been used")
        if row.expires_at <= now_utc():
            raise TokenExpiredError("Refresh token has expired")
        return row

    def read_refresh_token_unverified(self, token: str) -> RefreshClaims:
        """Claims of a refresh token, signature NOT checked.

        Only call behind the access-token gate; see TokenCodec.decode.
        """
        return _parse_claims(RefreshClaims, self._codec.decode(token))

    def revoke_salt(self, salt: str) -> bool:
        """Kill every token carrying this salt. Absent salt is not an error."""
        return self._salts.delete("salt", salt)

    def revoke_refresh_token(self, refresh_token_id: UUID) -> bool:
        return self._refresh_tokens.delete("id", refresh_token_id)

    def revoke_all(self, user_id: UUID) -> None:
        """Kill every session of a user. Safe to repeat."""
        self._salts.delete("user_id", user_id, DeleteMode.MANY)
        self._refresh_tokens.delete("user_id", user_id, DeleteMode.MANY)
