"""Tests for SecurityLogger - auth event audit trail."""

from unittest.mock import Mock
from uuid import uuid4

import pytest
import psycopg2
from psycopg2.extras import Json

from auth.exceptions import ServiceUnavailableError
from auth.security_logger import SecurityEvent, SecurityLogger
from clients.postgres_client import PostgresClient


@pytest.fixture
def db():
    return Mock(spec=PostgresClient)


@pytest.fixture
def audit(db):
    """SecurityLogger over a mocked database."""
    return SecurityLogger(db)


class TestLogEvent:
    """Test event logging."""

    def test_inserts_event(self, audit, db):
        user_id = uuid4()

        audit.log(SecurityEvent.LOGIN_SUCCEEDED, email="alice@example.com", user_id=user_id)

        query, params = db.execute_returning.call_args.args
        assert "INSERT INTO security_events" in query
        assert params[:3] == ("login_succeeded", "alice@example.com", str(user_id))
        assert params[3] is None

    def test_details_stored_as_json(self, audit, db):
        audit.log(SecurityEvent.LOGIN_FAILED, email="alice@example.com", details={"reason": "user_inactive"})

        details = db.execute_returning.call_args.args[1][3]
        assert isinstance(details, Json)
        assert details.adapted == {"reason": "user_inactive"}

    def test_anonymous_event(self, audit, db):
        audit.log(SecurityEvent.ACTIVATION_FAILED, details={"reason": "code_not_found"})

        params = db.execute_returning.call_args.args[1]
        assert params[1] is None
        assert params[2] is None


class TestGetRecentEvents:
    """Test event querying."""

    def test_no_filters(self, audit, db):
        db.execute.return_value = []

        assert audit.get_recent_events() == []

        query, params = db.execute.call_args.args
        assert "WHERE TRUE" in query
        assert params == (100,)

    def test_filters_combine(self, audit, db):
        user_id = uuid4()
        db.execute.return_value = [{"event_type": "session_revoked"}]

        events = audit.get_recent_events(
            email="alice@example.com",
            user_id=user_id,
            event_type=SecurityEvent.SESSION_REVOKED,
            limit=10,
        )

        assert events == [{"event_type": "session_revoked"}]
        query, params = db.execute.call_args.args
        assert "ORDER BY created_at DESC" in query
        assert params == ("alice@example.com", str(user_id), "session_revoked", 10)


class TestOutages:
    """Store failures surface as ServiceUnavailableError, like the repositories."""

    def test_insert_outage(self, audit, db):
        db.execute_returning.side_effect = psycopg2.OperationalError("canceling statement due to statement timeout")

        with pytest.raises(ServiceUnavailableError):
            audit.log(SecurityEvent.LOGIN_SUCCEEDED, email="alice@example.com")

    def test_query_outage(self, audit, db):
        db.execute.side_effect = psycopg2.OperationalError("could not connect")

        with pytest.raises(ServiceUnavailableError):
            audit.get_recent_events(email="alice@example.com")
