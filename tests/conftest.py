"""Shared test fixtures for the accounts test suite.

Repositories are replaced by in-memory stores that honor the same contracts
(per-row atomic deletes, unique emails, delete-and-return for refresh rows),
so service and HTTP tests run without PostgreSQL or Vault.
"""

import threading
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.config import AuthConfig
from auth.exceptions import UserAlreadyExistsError, UserNotFoundError
from auth.passwords import PasswordHasher
from auth.repositories import DeleteMode
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenCodec
from auth.types import PasswordReset, RefreshToken, Salt, User
from clients.email_client import EmailGatewayClient
from clients.storage_client import FileStorageClient
from main import build_app
from utils.timezone import now_utc


TEST_SECRET_KEY = "test-secret-key-for-signing-tokens"
TEST_BASE_URL = "https://accounts.example.com"


# =============================================================================
# IN-MEMORY REPOSITORIES
# =============================================================================


class InMemoryTable:
    """Row store keyed by id. Each method holds the lock, like one SQL statement."""

    MATCH_FIELDS: frozenset[str] = frozenset()

    def __init__(self):
        self.rows: dict[UUID, object] = {}
        self._lock = threading.Lock()

    def _check_field(self, field: str) -> None:
        if field not in self.MATCH_FIELDS:
            raise ValueError(f"Cannot match on '{field}'")

    def _matching(self, field: str, value) -> list:
        return [row for row in self.rows.values() if getattr(row, field) == value]

    def _find_one(self, field: str, value):
        self._check_field(field)
        with self._lock:
            matches = self._matching(field, value)
            return matches[0] if matches else None

    def delete(self, field: str, value, mode: DeleteMode = DeleteMode.ONE) -> bool:
        self._check_field(field)
        with self._lock:
            matches = self._matching(field, value)
            if mode is DeleteMode.ONE:
                matches = matches[:1]
            for row in matches:
                del self.rows[row.id]
            return bool(matches)


class InMemoryUserRepository(InMemoryTable):
    MATCH_FIELDS = frozenset({"id", "email"})

    def create(self, name, email, password_hash, is_activated=False) -> User:
        with self._lock:
            if self._matching("email", email):
                raise UserAlreadyExistsError(f"User with email '{email}' already exists.")
            user = User(
                id=uuid4(),
                name=name,
                email=email,
                password_hash=password_hash,
                is_activated=is_activated,
                created_at=now_utc(),
            )
            self.rows[user.id] = user
            return user

    def update(self, field, value, patch) -> User:
        self._check_field(field)
        with self._lock:
            matches = self._matching(field, value)
            if not matches:
                raise UserNotFoundError(f"User with {field} '{value}' does not exist.")
            user = matches[0]
            email = patch.get("email")
            if email and any(u.email == email and u.id != user.id for u in self.rows.values()):
                raise UserAlreadyExistsError(f"User with email '{email}' already exists.")
            updated = user.model_copy(update=patch)
            self.rows[user.id] = updated
            return updated

    def find_by_email(self, email):
        return self._find_one("email", email.lower())

    def find_by_id(self, user_id):
        return self._find_one("id", user_id)

    def is_registered(self, email) -> bool:
        return self.find_by_email(email) is not None


class InMemorySaltRepository(InMemoryTable):
    MATCH_FIELDS = frozenset({"id", "salt", "user_id"})

    def create(self, salt, user_id) -> Salt:
        row = Salt(id=uuid4(), salt=salt, user_id=user_id, created_at=now_utc())
        with self._lock:
            self.rows[row.id] = row
        return row

    def find_by_salt(self, salt):
        return self._find_one("salt", salt)

    def is_valid(self, salt) -> bool:
        return self.find_by_salt(salt) is not None


class InMemoryPasswordResetRepository(InMemoryTable):
    MATCH_FIELDS = frozenset({"id", "email", "token"})

    def create(self, email, token) -> PasswordReset:
        row = PasswordReset(id=uuid4(), email=email, token=token, created_at=now_utc())
        with self._lock:
            self.rows[row.id] = row
        return row

    def find_by_token(self, token):
        return self._find_one("token", token)


class InMemoryRefreshTokenRepository(InMemoryTable):
    MATCH_FIELDS = frozenset({"id", "user_id"})

    def create(self, user_id, expires_at) -> RefreshToken:
        row = RefreshToken(id=uuid4(), user_id=user_id, expires_at=expires_at, created_at=now_utc())
        with self._lock:
            self.rows[row.id] = row
        return row

    def find_by_id_and_delete(self, refresh_token_id):
        with self._lock:
            return self.rows.pop(refresh_token_id, None)


# =============================================================================
# DOMAIN FIXTURES
# =============================================================================


@pytest.fixture
def config():
    """Fast hashing, plain-HTTP cookies for the test client."""
    return AuthConfig(
        password_hash_rounds=4,
        app_base_url=TEST_BASE_URL,
        app_name="Accounts Test",
        secure_cookies=False,
    )


@pytest.fixture
def codec():
    return TokenCodec(TEST_SECRET_KEY)


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def salts():
    return InMemorySaltRepository()


@pytest.fixture
def password_resets():
    return InMemoryPasswordResetRepository()


@pytest.fixture
def refresh_tokens():
    return InMemoryRefreshTokenRepository()


@pytest.fixture
def password_hasher(config):
    return PasswordHasher(rounds=config.password_hash_rounds)


@pytest.fixture
def security_logger():
    """Audit trail is asserted on, never written."""
    return Mock(spec=SecurityLogger)


@pytest.fixture
def session_manager(config, codec, salts, refresh_tokens):
    return SessionManager(config=config, codec=codec, salts=salts, refresh_tokens=refresh_tokens)


@pytest.fixture
def auth_service(config, users, salts, password_resets, session_manager, password_hasher, security_logger):
    return AuthService(
        config=config,
        users=users,
        salts=salts,
        password_resets=password_resets,
        session_manager=session_manager,
        password_hasher=password_hasher,
        security_logger=security_logger,
    )


@pytest.fixture
def active_user(users, password_hasher):
    """An activated user whose password is 'secret1'."""
    return users.create(
        name="Alice",
        email="alice@example.com",
        password_hash=password_hasher.hash("secret1"),
        is_activated=True,
    )


# =============================================================================
# HTTP FIXTURES
# =============================================================================


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    return Mock(spec=EmailGatewayClient)


@pytest.fixture
def storage_client(tmp_path):
    return FileStorageClient(storage_dir=tmp_path / "storage", public_url=f"{TEST_BASE_URL}/storage")


@pytest.fixture
def app(config, auth_service, session_manager, mock_email_client, storage_client):
    return build_app(config, auth_service, session_manager, mock_email_client, storage_client)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
