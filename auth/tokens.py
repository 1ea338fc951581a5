"""Signed token codec.

Compact HS256 JWTs carrying a claim set plus `iat`/`exp`. Stateless: the
only input besides the claims is the shared secret. Whether a token is
still honored is decided elsewhere (salt existence, refresh row existence).
"""

from datetime import timedelta
from typing import Any

import jwt

from auth.exceptions import InvalidTokenError, TokenExpiredError
from utils.timezone import now_utc


class TokenCodec:
    """Signs, verifies and decodes JWTs.

    Examples
    --------
    >>> codec = TokenCodec(secret_key="your-secret-key")
    >>> token = codec.sign({"user_id": "42", "salt": "ab12"}, ttl_seconds=3600)
    >>> codec.verify(token)["salt"]
    'ab12'
    """

    ALGORITHM = "HS256"
    RESERVED_CLAIMS = frozenset({"exp", "iat"})

    def __init__(self, secret_key: str):
        if not secret_key:
            msg = "Token secret key cannot be empty"
            raise ValueError(msg)

        self._secret_key = secret_key

    def sign(self, claims: dict[str, Any], ttl_seconds: int) -> str:
        """Encode claims with an expiry `ttl_seconds` from now.

        Parameters
        ----------
        claims
            JSON-serializable claim set. Must not contain `exp` or `iat`.
        ttl_seconds
            Seconds until the token expires.
        """
        clash = self.RESERVED_CLAIMS & claims.keys()
        if clash:
            raise ValueError(f"Claims may not set reserved keys: {sorted(clash)}")

        now = now_utc()
        payload = {
            **claims,
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.ALGORITHM)

    def verify(self, token: str) -> dict[str, Any]:
        """Check signature and expiry, return the claims.

        Raises
        ------
        TokenExpiredError
            If `exp` has passed (signature was valid).
        InvalidTokenError
            If the token is malformed or the signature does not match.
        """
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

    def decode(self, token: str) -> dict[str, Any]:
        """Read claims WITHOUT checking signature or expiry.

        Trust boundary: only for tokens whose holder was already
        authenticated by other means (logout runs behind the access-token
        gate). Never use the result to grant access.

        Raises
        ------
        InvalidTokenError
            If the token is not structurally a JWT.
        """
        try:
            return jwt.decode(
                token,
                options={"verify_signature": False, "verify_exp": False},
                algorithms=[self.ALGORITHM],
            )
        except jwt.DecodeError as e:
            raise InvalidTokenError(f"Malformed token: {e}") from e
