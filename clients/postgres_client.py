"""
PostgreSQL access for the account repositories.

A ThreadedConnectionPool per database URL is shared by every client in the
process. Each pooled connection is opened with a server-side
statement_timeout, so a stuck query is cancelled by PostgreSQL and surfaces
as psycopg2.OperationalError (QueryCanceled) instead of holding a request.

Every call runs in its own transaction and commits before returning.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 10
DEFAULT_STATEMENT_TIMEOUT_MS = 5000

Params = Tuple | Dict | None


def _adapt(value: Any) -> Any:
    """Stringify UUIDs anywhere inside a parameter structure."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_adapt(v) for v in value)
    if isinstance(value, dict):
        return {k: _adapt(v) for k, v in value.items()}
    return value


class PostgresClient:
    """
    Pooled psycopg2 client returning rows as plain dicts.

    Usage:
        db = PostgresClient(database_url)
        user = db.execute_single("SELECT * FROM users WHERE email = %s", (email,))
        taken = db.execute_scalar("SELECT EXISTS (SELECT 1 FROM users WHERE email = %s)", (email,))
    """

    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(
        self,
        database_url: str,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        statement_timeout_ms: int = DEFAULT_STATEMENT_TIMEOUT_MS,
        min_connections: int = 2,
        max_connections: int = 20,
    ):
        self._database_url = database_url
        self._pool_kwargs = {
            "minconn": min_connections,
            "maxconn": max_connections,
            "dsn": database_url,
            "connect_timeout": connect_timeout,
            "options": f"-c statement_timeout={statement_timeout_ms}",
        }
        self._pool()

    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        """Return the shared pool for this URL, creating it on first use."""
        with self._pools_lock:
            pool = self._connection_pools.get(self._database_url)
            if pool is None:
                pool = psycopg2.pool.ThreadedConnectionPool(**self._pool_kwargs)
                self._connection_pools[self._database_url] = pool
                logger.info(
                    f"Connection pool created "
                    f"(max {self._pool_kwargs['maxconn']}, {self._pool_kwargs['options']})"
                )
            return pool

    @contextmanager
    def get_connection(self) -> Iterator[Any]:
        """Borrow a pooled connection; roll back on database errors.

        An exhausted pool raises OperationalError, the same as an unreachable
        server, so callers see one retryable failure type.
        """
        pool = self._pool()
        try:
            conn = pool.getconn()
        except psycopg2.pool.PoolError as e:
            logger.warning(f"Connection pool exhausted: {e}")
            raise psycopg2.OperationalError(f"Connection pool exhausted: {e}") from e
        if conn is None:
            raise psycopg2.OperationalError("Could not get connection from pool")

        try:
            yield conn
        except psycopg2.Error:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            # A connection the server dropped must not go back into rotation
            pool.putconn(conn, close=bool(conn.closed))

    @contextmanager
    def _cursor(self, query, params: Params, as_dicts: bool = True) -> Iterator[Any]:
        """Run one statement and commit once the caller has read the cursor."""
        factory = psycopg2.extras.RealDictCursor if as_dicts else None
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=factory) as cur:
                cur.execute(query, _adapt(params))
                yield cur
            conn.commit()

    def execute(self, query, params: Params = None) -> List[Dict[str, Any]]:
        """All result rows as dicts; [] for statements without a result set."""
        with self._cursor(query, params) as cur:
            return [dict(row) for row in cur.fetchall()] if cur.description else []

    def execute_single(self, query, params: Params = None) -> Dict[str, Any] | None:
        rows = self.execute(query, params)
        return rows[0] if rows else None

    def execute_scalar(self, query, params: Params = None) -> Any:
        """First column of the first row, or None."""
        with self._cursor(query, params, as_dicts=False) as cur:
            row = cur.fetchone()
            return row[0] if row else None

    def execute_returning(self, query, params: Params = None) -> List[Dict[str, Any]]:
        """Rows produced by an INSERT/UPDATE/DELETE ... RETURNING."""
        with self._cursor(query, params) as cur:
            return [dict(row) for row in cur.fetchall()]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close every pool in the process; used on application shutdown."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
