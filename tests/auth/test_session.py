"""Tests for SessionManager - salted token pairs and their revocation."""

from datetime import timedelta
from uuid import uuid4

import pytest

from auth.exceptions import InvalidTokenError, SessionRevokedError, TokenExpiredError
from auth.session import SALT_BYTES, generate_salt
from auth.tokens import TokenCodec
from auth.types import RefreshClaims
from utils.timezone import now_utc


def test_generate_salt_is_random_hex():
    first, second = generate_salt(), generate_salt()

    assert first != second
    assert len(first) == SALT_BYTES * 2
    int(first, 16)


class TestIssueTokenPair:

    def test_access_and_refresh_share_salt(self, session_manager, codec):
        user_id = uuid4()

        tokens = session_manager.issue_token_pair(user_id, 24)

        access = codec.verify(tokens.access_token)
        refresh = codec.verify(tokens.refresh_token)
        assert access["salt"] == refresh["salt"]
        assert access["user_id"] == str(user_id)
        assert refresh["duration"] == 24

    def test_persists_salt_and_refresh_row(self, session_manager, codec, salts, refresh_tokens):
        user_id = uuid4()

        tokens = session_manager.issue_token_pair(user_id, 24)

        claims = codec.verify(tokens.refresh_token)
        assert salts.is_valid(claims["salt"])
        row = refresh_tokens.rows[RefreshClaims.model_validate(claims).refresh_token_id]
        assert row.user_id == user_id

    def test_access_lifetime_independent_of_duration(self, session_manager, codec, config):
        short = session_manager.issue_token_pair(uuid4(), 1)
        long = session_manager.issue_token_pair(uuid4(), 720)

        for tokens in (short, long):
            claims = codec.verify(tokens.access_token)
            assert claims["exp"] - claims["iat"] == config.access_token_lifetime_seconds

    def test_refresh_token_expires_with_session(self, session_manager, codec):
        tokens = session_manager.issue_token_pair(uuid4(), 720)

        claims = codec.verify(tokens.refresh_token)
        assert claims["exp"] - claims["iat"] == 720 * 3600


class TestVerifyAccessToken:

    def test_returns_context(self, session_manager):
        user_id = uuid4()
        tokens = session_manager.issue_token_pair(user_id, 24)

        context = session_manager.verify_access_token(tokens.access_token)

        assert context.user_id == user_id

    def test_revoked_salt_rejected(self, session_manager):
        tokens = session_manager.issue_token_pair(uuid4(), 24)
        context = session_manager.verify_access_token(tokens.access_token)

        assert session_manager.revoke_salt(context.salt) is True

        with pytest.raises(SessionRevokedError):
            session_manager.verify_access_token(tokens.access_token)

    def test_expired_token_rejected(self, session_manager, codec, salts):
        salts.create(salt="live", user_id=uuid4())
        token = codec.sign({"user_id": str(uuid4()), "salt": "live"}, ttl_seconds=-10)

        with pytest.raises(TokenExpiredError):
            session_manager.verify_access_token(token)

    def test_missing_claims_rejected(self, session_manager, codec):
        token = codec.sign({"salt": "abc"}, ttl_seconds=60)

        with pytest.raises(InvalidTokenError):
            session_manager.verify_access_token(token)

    def test_foreign_signature_rejected(self, session_manager):
        token = TokenCodec("other-secret").sign({"user_id": str(uuid4()), "salt": "abc"}, ttl_seconds=60)

        with pytest.raises(InvalidTokenError):
            session_manager.verify_access_token(token)


class TestRedeemRefreshToken:

    def test_second_redemption_fails(self, session_manager):
        tokens = session_manager.issue_token_pair(uuid4(), 24)
        claims = session_manager.verify_refresh_token(tokens.refresh_token)

        session_manager.redeem_refresh_token(claims)

        with pytest.raises(InvalidTokenError, match="already been used"):
            session_manager.redeem_refresh_token(claims)

    def test_expired_row_rejected(self, session_manager, refresh_tokens):
        tokens = session_manager.issue_token_pair(uuid4(), 24)
        claims = session_manager.verify_refresh_token(tokens.refresh_token)
        row = refresh_tokens.rows[claims.refresh_token_id]
        refresh_tokens.rows[row.id] = row.model_copy(update={"expires_at": now_utc() - timedelta(seconds=1)})

        with pytest.raises(TokenExpiredError):
            session_manager.redeem_refresh_token(claims)
        assert claims.refresh_token_id not in refresh_tokens.rows


class TestRevocation:

    def test_revoke_absent_salt_is_not_an_error(self, session_manager):
        assert session_manager.revoke_salt("missing") is False

    def test_revoke_all_removes_every_session(self, session_manager, salts, refresh_tokens):
        user_id, other_id = uuid4(), uuid4()
        session_manager.issue_token_pair(user_id, 24)
        session_manager.issue_token_pair(user_id, 720)
        other = session_manager.issue_token_pair(other_id, 24)

        session_manager.revoke_all(user_id)
        session_manager.revoke_all(user_id)

        assert len(salts.rows) == 1
        assert len(refresh_tokens.rows) == 1
        assert session_manager.verify_access_token(other.access_token).user_id == other_id

    def test_read_unverified_ignores_signature(self, session_manager):
        refresh_id = uuid4()
        token = TokenCodec("other-secret").sign(
            {"refresh_token_id": str(refresh_id), "duration": 24, "salt": "abc"},
            ttl_seconds=-10,
        )

        claims = session_manager.read_refresh_token_unverified(token)

        assert claims.refresh_token_id == refresh_id
