"""Password hashing using bcrypt."""

import bcrypt

# bcrypt only reads this many bytes; newer releases raise instead of truncating
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Slow adaptive hashing with a configurable work factor.

    Comparison is constant-time (delegated to bcrypt.checkpw).
    """

    def __init__(self, rounds: int = 12):
        self._rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a plaintext password. Returns the bcrypt hash as a string."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """True if password matches the hash. Malformed hashes never match."""
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            return False
