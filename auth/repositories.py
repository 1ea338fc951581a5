"""Database operations for authentication.

One repository per table: users, salts, password_resets, refresh_tokens.
These are the only code paths allowed to touch those tables.

Every call is a single statement, so per-row atomicity is all the store
guarantees. Deletes never fail on absent rows; they report whether anything
was removed so callers can use "delete succeeded" as proof of redemption.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

import psycopg2
import psycopg2.errors
from psycopg2 import sql

from auth.exceptions import ServiceUnavailableError, UserAlreadyExistsError, UserNotFoundError
from auth.types import PasswordReset, RefreshToken, Salt, User
from clients.postgres_client import PostgresClient

logger = logging.getLogger(__name__)


class DeleteMode(Enum):
    """How many matching rows a delete removes."""

    ONE = "one"
    MANY = "many"


class BaseRepository:
    """Shared plumbing: column whitelists, error translation, deletes."""

    TABLE: str = ""
    COLUMNS: tuple[str, ...] = ()
    MATCH_FIELDS: frozenset[str] = frozenset()

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def _field(self, field: str) -> sql.Identifier:
        """Quote a match column, rejecting anything not whitelisted."""
        if field not in self.MATCH_FIELDS:
            raise ValueError(
                f"Cannot match {self.TABLE} on '{field}'. "
                f"Allowed: {', '.join(sorted(self.MATCH_FIELDS))}"
            )
        return sql.Identifier(field)

    def _columns(self) -> sql.Composed:
        return sql.SQL(", ").join(sql.Identifier(c) for c in self.COLUMNS)

    def _run(self, method, query, params=None) -> Any:
        """Execute through the client, mapping outages to ServiceUnavailableError."""
        try:
            return method(query, params)
        except psycopg2.OperationalError as e:
            logger.warning(f"Database unavailable during {self.TABLE} operation: {e}")
            raise ServiceUnavailableError() from e

    def _find_one(self, field: str, value: Any) -> dict | None:
        query = sql.SQL("SELECT {cols} FROM {table} WHERE {field} = %s LIMIT 1").format(
            cols=self._columns(),
            table=sql.Identifier(self.TABLE),
            field=self._field(field),
        )
        return self._run(self._db.execute_single, query, (value,))

    def _insert(self, values: dict[str, Any]) -> dict:
        query = sql.SQL("INSERT INTO {table} ({keys}) VALUES ({placeholders}) RETURNING {cols}").format(
            table=sql.Identifier(self.TABLE),
            keys=sql.SQL(", ").join(sql.Identifier(k) for k in values),
            placeholders=sql.SQL(", ").join(sql.Placeholder() * len(values)),
            cols=self._columns(),
        )
        rows = self._run(self._db.execute_returning, query, tuple(values.values()))
        return rows[0]

    def delete(self, field: str, value: Any, mode: DeleteMode = DeleteMode.ONE) -> bool:
        """Delete rows where field = value.

        Returns:
            True if at least one row was removed, False if none matched.
        """
        table = sql.Identifier(self.TABLE)
        if mode is DeleteMode.ONE:
            query = sql.SQL(
                "DELETE FROM {table} WHERE id = "
                "(SELECT id FROM {table} WHERE {field} = %s LIMIT 1) RETURNING id"
            ).format(table=table, field=self._field(field))
        else:
            query = sql.SQL("DELETE FROM {table} WHERE {field} = %s RETURNING id").format(
                table=table, field=self._field(field)
            )
        rows = self._run(self._db.execute_returning, query, (value,))
        return len(rows) > 0


class UserRepository(BaseRepository):
    """Credential store: identity, password hash, activation flag."""

    TABLE = "users"
    COLUMNS = ("id", "name", "email", "password_hash", "avatar_url", "is_activated", "created_at")
    MATCH_FIELDS = frozenset({"id", "email"})
    UPDATABLE_FIELDS = frozenset({"name", "email", "password_hash", "avatar_url", "is_activated"})

    def create(self, name: str, email: str, password_hash: str, is_activated: bool = False) -> User:
        """Insert a user.

        Raises:
            UserAlreadyExistsError: If the email is taken (unique index).
        """
        try:
            row = self._insert({
                "name": name,
                "email": email,
                "password_hash": password_hash,
                "is_activated": is_activated,
            })
        except psycopg2.errors.UniqueViolation as e:
            raise UserAlreadyExistsError(f"User with email '{email}' already exists.") from e
        return User(**row)

    def update(self, field: str, value: Any, patch: dict[str, Any]) -> User:
        """Apply patch to the user matched by field = value.

        Raises:
            UserNotFoundError: If no user matches.
            UserAlreadyExistsError: If the patch changes email to a taken one.
        """
        unknown = set(patch) - self.UPDATABLE_FIELDS
        if unknown or not patch:
            raise ValueError(f"Invalid user patch fields: {sorted(unknown) or 'empty patch'}")

        query = sql.SQL("UPDATE users SET {assignments} WHERE {field} = %s RETURNING {cols}").format(
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(k)) for k in patch
            ),
            field=self._field(field),
            cols=self._columns(),
        )
        try:
            rows = self._run(self._db.execute_returning, query, (*patch.values(), value))
        except psycopg2.errors.UniqueViolation as e:
            raise UserAlreadyExistsError(f"User with email '{patch.get('email')}' already exists.") from e

        if not rows:
            raise UserNotFoundError(f"User with {field} '{value}' does not exist.")
        return User(**rows[0])

    def find_by_email(self, email: str) -> User | None:
        """Find user by email (stored lowercased)."""
        row = self._find_one("email", email.lower())
        return User(**row) if row else None

    def find_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._find_one("id", user_id)
        return User(**row) if row else None

    def is_registered(self, email: str) -> bool:
        """Check whether an email belongs to any user."""
        return bool(self._run(
            self._db.execute_scalar,
            "SELECT EXISTS (SELECT 1 FROM users WHERE email = %s)",
            (email.lower(),),
        ))


class SaltRepository(BaseRepository):
    """Salt store. A row's existence is what keeps its tokens alive."""

    TABLE = "salts"
    COLUMNS = ("id", "salt", "user_id", "created_at")
    MATCH_FIELDS = frozenset({"id", "salt", "user_id"})

    def create(self, salt: str, user_id: UUID) -> Salt:
        return Salt(**self._insert({"salt": salt, "user_id": user_id}))

    def find_by_salt(self, salt: str) -> Salt | None:
        row = self._find_one("salt", salt)
        return Salt(**row) if row else None

    def is_valid(self, salt: str) -> bool:
        """True while a live salt row carries this value."""
        return bool(self._run(
            self._db.execute_scalar,
            "SELECT EXISTS (SELECT 1 FROM salts WHERE salt = %s)",
            (salt,),
        ))


class PasswordResetRepository(BaseRepository):
    """Reset token store."""

    TABLE = "password_resets"
    COLUMNS = ("id", "email", "token", "created_at")
    MATCH_FIELDS = frozenset({"id", "email", "token"})

    def create(self, email: str, token: str) -> PasswordReset:
        return PasswordReset(**self._insert({"email": email, "token": token}))

    def find_by_token(self, token: str) -> PasswordReset | None:
        row = self._find_one("token", token)
        return PasswordReset(**row) if row else None


class RefreshTokenRepository(BaseRepository):
    """Refresh token store."""

    TABLE = "refresh_tokens"
    COLUMNS = ("id", "user_id", "expires_at", "created_at")
    MATCH_FIELDS = frozenset({"id", "user_id"})

    def create(self, user_id: UUID, expires_at: datetime) -> RefreshToken:
        return RefreshToken(**self._insert({"user_id": user_id, "expires_at": expires_at}))

    def find_by_id_and_delete(self, refresh_token_id: UUID) -> RefreshToken | None:
        """Atomically remove and return a refresh token row.

        Of two concurrent callers for the same id, exactly one gets the row.
        """
        query = sql.SQL("DELETE FROM refresh_tokens WHERE id = %s RETURNING {cols}").format(
            cols=self._columns()
        )
        rows = self._run(self._db.execute_returning, query, (refresh_token_id,))
        return RefreshToken(**rows[0]) if rows else None
