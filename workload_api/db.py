"""PostgreSQL pool and query helpers with retry for transient failures."""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence, TypeVar

from psycopg2 import Error as PsycopgError
from psycopg2 import IntegrityError, InterfaceError, OperationalError
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import RealDictCursor
from psycopg2.pool import SimpleConnectionPool

from workload_engine import UpstreamUnavailableError, ValidationError

from .config import get_database_config
from .logging_config import get_logger

log = get_logger(__name__)

_T = TypeVar("_T")

RETRYABLE_PGCODES = {
    "40P01",
    "40001",
    "08000",
    "08001",
    "08003",
    "08004",
    "08006",
    "57P03",
}


def _truncate_sql(sql: str, limit: int = 150) -> str:
    return sql if len(sql) <= limit else f"{sql[:limit]}...(truncated)"


def _is_retryable_error(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    pgcode = getattr(exc, "pgcode", None)
    return bool(pgcode) and pgcode in RETRYABLE_PGCODES


class ConnectionManager:
    _pool: Optional[SimpleConnectionPool] = None
    _pool_lock = threading.Lock()

    @classmethod
    def init_pool(cls) -> SimpleConnectionPool:
        if cls._pool:
            return cls._pool

        with cls._pool_lock:
            if cls._pool:
                return cls._pool

            config = get_database_config()
            try:
                cls._pool = SimpleConnectionPool(
                    config.min_connections,
                    config.max_connections,
                    **config.connect_kwargs(),
                )
            except (OperationalError, InterfaceError) as exc:
                cls._pool = None
                log.error("DB_POOL_INIT_FAILED|error=%s", exc, exc_info=True)
                raise UpstreamUnavailableError("Database is unavailable") from exc

        log.info(
            "DB_POOL_INITIALIZED|min=%d|max=%d",
            config.min_connections,
            config.max_connections,
        )
        return cls._pool

    @classmethod
    @contextmanager
    def connection(cls) -> Iterator[PgConnection]:
        pool = cls.init_pool()
        # SimpleConnectionPool is not thread-safe; routes run on a thread pool.
        with cls._pool_lock:
            conn = pool.getconn()
        error: Optional[Exception] = None
        try:
            yield conn
        except Exception as exc:
            error = exc
            raise
        finally:
            # Broken connections are discarded rather than handed back out.
            close = isinstance(error, (OperationalError, InterfaceError))
            if close:
                log.warning("DB_CLOSING_BAD_CONNECTION|error_type=%s", type(error).__name__)
            try:
                with cls._pool_lock:
                    pool.putconn(conn, close=close)
            except Exception as exc:  # pragma: no cover - release failures are only logged
                log.error("DB_CONNECTION_RELEASE_FAILED|error=%s", exc, exc_info=True)

    @classmethod
    def close_pool(cls) -> None:
        with cls._pool_lock:
            if cls._pool:
                cls._pool.closeall()
                cls._pool = None
                log.info("DB_POOL_CLOSED")


def _execute_with_retry(operation: Callable[[], _T], context: str) -> _T:
    config = get_database_config()
    attempts = max(1, config.max_retries)

    for attempt in range(attempts):
        try:
            return operation()
        except IntegrityError as exc:
            log.warning("DB_CONSTRAINT_VIOLATION|context=%s|pgcode=%s|error=%s", context, exc.pgcode, exc)
            raise ValidationError(f"Rejected by database constraint: {exc.pgerror or exc}") from exc
        except PsycopgError as exc:
            if not _is_retryable_error(exc) or attempt == attempts - 1:
                log.error("DB_ERROR|context=%s|error=%s", context, exc, exc_info=True)
                raise UpstreamUnavailableError(f"Database operation '{context}' failed") from exc

            delay = config.retry_delay * (2**attempt)
            log.warning(
                "DB_RETRY|context=%s|attempt=%d|max=%d|delay=%.2f|error=%s",
                context,
                attempt + 1,
                attempts,
                delay,
                exc,
            )
            time.sleep(delay)

    raise UpstreamUnavailableError(f"Database operation '{context}' failed")


def fetch_all(sql: str, params: Optional[Sequence[Any]] = None, context: str = "fetch_all") -> List[dict]:
    """Run a query and return its rows as plain dictionaries."""

    def operation() -> List[dict]:
        with ConnectionManager.connection() as conn:
            with conn, conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(sql, params)
                return [dict(row) for row in cursor.fetchall()]

    log.debug("DB_QUERY|context=%s|sql=%s", context, _truncate_sql(sql))
    return _execute_with_retry(operation, context)


def fetch_one(sql: str, params: Optional[Sequence[Any]] = None, context: str = "fetch_one") -> Optional[dict]:
    def operation() -> Optional[dict]:
        with ConnectionManager.connection() as conn:
            with conn, conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(sql, params)
                row = cursor.fetchone()
                return dict(row) if row is not None else None

    log.debug("DB_QUERY|context=%s|sql=%s", context, _truncate_sql(sql))
    return _execute_with_retry(operation, context)


def execute_transaction(work: Callable[[PgCursor], _T], context: str = "transaction") -> _T:
    """Run ``work`` inside one transaction: it commits on success and rolls back on error."""

    def operation() -> _T:
        with ConnectionManager.connection() as conn:
            # 'with conn' commits on a clean exit and rolls back on exception.
            with conn, conn.cursor(cursor_factory=RealDictCursor) as cursor:
                return work(cursor)

    return _execute_with_retry(operation, context)
