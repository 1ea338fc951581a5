"""Audit trail of account security events.

Rows are appended to security_events and never updated. Callers pass
identifiers and a short reason at most; passwords, hashes and tokens never
reach this module.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

import psycopg2
from psycopg2.extras import Json

from auth.exceptions import ServiceUnavailableError
from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = "id, event_type, email, user_id, details, created_at"


class SecurityEvent(Enum):
    """Auth security event types."""

    USER_REGISTERED = "user_registered"
    USER_ACTIVATED = "user_activated"
    ACTIVATION_FAILED = "activation_failed"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    TOKEN_REFRESHED = "token_refreshed"
    REFRESH_REJECTED = "refresh_rejected"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET = "password_reset"
    PASSWORD_CHANGED = "password_changed"
    PROFILE_UPDATED = "profile_updated"
    SESSION_REVOKED = "session_revoked"


class SecurityLogger:
    """Writes and queries security_events."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def _run(self, method, query, params) -> Any:
        try:
            return method(query, params)
        except psycopg2.OperationalError as e:
            logger.warning(f"Database unavailable for security_events: {e}")
            raise ServiceUnavailableError() from e

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append one event.

        Raises:
            ServiceUnavailableError: Store unreachable or statement timed out.
        """
        self._run(
            self._db.execute_returning,
            """INSERT INTO security_events (event_type, email, user_id, details, created_at)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                Json(details) if details else None,
                now_utc(),
            ),
        )
        logger.info(f"Security event {event.value} (user={user_id}, email={email})")

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Newest-first events matching every filter that is given."""
        filters = {
            "email": email,
            "user_id": str(user_id) if user_id else None,
            "event_type": event_type.value if event_type else None,
        }
        active = {column: value for column, value in filters.items() if value is not None}
        where = " AND ".join(f"{column} = %s" for column in active) or "TRUE"

        return self._run(
            self._db.execute,
            f"""SELECT {_EVENT_COLUMNS}
                FROM security_events
                WHERE {where}
                ORDER BY created_at DESC
                LIMIT %s""",
            (*active.values(), limit),
        )
