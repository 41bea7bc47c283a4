import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.errors
import psycopg2.extras
from fastapi import Request
from psycopg2.pool import ThreadedConnectionPool

from src.insurance_api.config import Settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a statement fails in the database driver."""


class ConstraintError(StorageError):
    def __init__(self, message: str, constraint: Optional[str] = None):
        self.constraint = constraint
        super().__init__(message)


class UniqueConstraintError(ConstraintError):
    """A row collided with a unique index (SQLSTATE 23505)."""


class ForeignKeyConstraintError(ConstraintError):
    """A row referenced a parent that does not exist (SQLSTATE 23503)."""


def _constraint_name(exc: psycopg2.Error) -> Optional[str]:
    diag = getattr(exc, "diag", None)
    return getattr(diag, "constraint_name", None)


def _translate(exc: psycopg2.Error) -> StorageError:
    if isinstance(exc, psycopg2.errors.UniqueViolation):
        return UniqueConstraintError("Unique constraint violated", _constraint_name(exc))
    if isinstance(exc, psycopg2.errors.ForeignKeyViolation):
        return ForeignKeyConstraintError("Foreign key constraint violated", _constraint_name(exc))
    return StorageError(f"Database error ({exc.pgcode or type(exc).__name__})")


def _rollback(conn: Optional[Any]) -> None:
    if conn is None:
        return
    try:
        conn.rollback()
    except psycopg2.Error:
        logger.warning("Rollback failed", exc_info=True)


class Database:
    """PostgreSQL connection pool plus the query helpers handlers call.

    One instance lives for the whole process: it is opened in the application
    lifespan, handed to handlers through ``get_db`` and closed on shutdown.
    Each helper borrows a connection for exactly one statement.
    """

    def __init__(self, dsn: str, *, minconn: int = 1, maxconn: int = 10, sslmode: Optional[str] = None):
        self._dsn = dsn
        self._minconn = minconn
        self._maxconn = maxconn
        self._sslmode = sslmode
        self._pool: Optional[ThreadedConnectionPool] = None
        self._slots = threading.BoundedSemaphore(maxconn)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.build_dsn(),
            minconn=settings.db_pool_min,
            maxconn=settings.db_pool_max,
            sslmode=settings.sslmode,
        )

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    # PUBLIC_INTERFACE
    def open(self) -> None:
        """Create the connection pool. Calling it twice is a no-op."""
        if self._pool is not None:
            return
        kwargs: Dict[str, Any] = {}
        if self._sslmode:
            kwargs["sslmode"] = self._sslmode
        self._pool = ThreadedConnectionPool(
            minconn=self._minconn,
            maxconn=self._maxconn,
            dsn=self._dsn,
            **kwargs,
        )
        logger.info("Database pool opened (min=%s, max=%s)", self._minconn, self._maxconn)

    # PUBLIC_INTERFACE
    def close(self) -> None:
        """Close every pooled connection."""
        if self._pool is None:
            return
        self._pool.closeall()
        self._pool = None
        logger.info("Database pool closed")

    @contextmanager
    def _cursor(self, commit: bool) -> Iterator[psycopg2.extras.RealDictCursor]:
        pool = self._pool
        if pool is None:
            raise StorageError("Database pool is not open.")
        # getconn raises PoolError once maxconn connections are out, so
        # callers wait here for a free slot instead.
        self._slots.acquire()
        conn = None
        try:
            conn = pool.getconn()
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                yield cur
            if commit:
                conn.commit()
        except psycopg2.Error as exc:
            _rollback(conn)
            raise _translate(exc) from exc
        except Exception:
            _rollback(conn)
            raise
        finally:
            if conn is not None:
                pool.putconn(conn)
            self._slots.release()

    # PUBLIC_INTERFACE
    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Fetch a single row as a dict, or None."""
        with self._cursor(commit=False) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            return dict(row) if row else None

    # PUBLIC_INTERFACE
    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Fetch all rows as dicts."""
        with self._cursor(commit=False) as cur:
            cur.execute(query, params or [])
            return [dict(r) for r in cur.fetchall()]

    # PUBLIC_INTERFACE
    def execute_returning(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute a statement with RETURNING and return the first row, or None when nothing matched."""
        with self._cursor(commit=True) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            return dict(row) if row else None

    # PUBLIC_INTERFACE
    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Execute a statement with RETURNING and return the first row as dict."""
        row = self.execute_returning(query, params)
        if row is None:
            raise StorageError("Expected one row returned, got none.")
        return row


# PUBLIC_INTERFACE
def get_db(request: Request) -> Database:
    """Dependency returning the process-wide database installed by the app lifespan."""
    return request.app.state.db
