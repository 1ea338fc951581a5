"""Tests for auth/config.py - Auth configuration with validation."""

import pytest
from pydantic import ValidationError

from auth.config import AuthConfig


class TestAuthConfigDefaults:
    """Tests that AuthConfig has sensible defaults."""

    def test_access_token_lifetime_default(self):
        config = AuthConfig()
        assert config.access_token_lifetime_seconds == 3600

    def test_session_duration_defaults(self):
        config = AuthConfig()
        assert config.session_duration_hours == 24
        assert config.remember_me_duration_hours == 720  # 30 days

    def test_hash_rounds_default(self):
        assert AuthConfig().password_hash_rounds == 12

    def test_cookies_secure_by_default(self):
        assert AuthConfig().secure_cookies is True


class TestAuthConfigValidation:
    """Tests that AuthConfig enforces validation bounds."""

    def test_access_token_lifetime_min_bound(self):
        with pytest.raises(ValidationError):
            AuthConfig(access_token_lifetime_seconds=59)  # < 60

    def test_session_duration_min_bound(self):
        with pytest.raises(ValidationError):
            AuthConfig(session_duration_hours=0)  # < 1

    def test_hash_rounds_bounds(self):
        with pytest.raises(ValidationError):
            AuthConfig(password_hash_rounds=3)
        with pytest.raises(ValidationError):
            AuthConfig(password_hash_rounds=17)

    def test_remember_me_not_shorter_than_session(self):
        with pytest.raises(ValidationError, match="remember_me_duration_hours"):
            AuthConfig(session_duration_hours=48, remember_me_duration_hours=24)


class TestSessionDuration:

    def test_normal_login(self):
        assert AuthConfig().session_duration(remember_me=False) == 24

    def test_remember_me(self):
        assert AuthConfig().session_duration(remember_me=True) == 720


class TestLinks:

    def test_activation_url(self):
        config = AuthConfig(app_base_url="https://accounts.example.com/")
        assert config.activation_url("abc") == "https://accounts.example.com/auth/activate/abc"

    def test_password_reset_url(self):
        config = AuthConfig(app_base_url="https://accounts.example.com")
        assert config.password_reset_url("tok") == "https://accounts.example.com/password/reset/tok"
