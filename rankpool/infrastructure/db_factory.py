"""
Database connection factory utilities for the ranking service.

Provides the DSN builder, a one-off connection helper and the PostgreSQL-backed
bounded pool used by the ranking pipeline.

Connection establishment outside the request path (startup readiness probe,
data seeding) retries transient failures with tenacity. Pool acquisition never
retries: a `PoolTimeout` from psycopg_pool surfaces as `PoolExhausted`.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rankpool.config import get_settings
from rankpool.infrastructure.resource_pool import AbstractResourcePool
from rankpool.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    return get_settings().dsn


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Open a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for one-off operations such as seeding; request handling goes through
    the pool.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def wait_for_database(dsn: Optional[str] = None) -> None:
    """
    Block until PostgreSQL answers a trivial query.

    Used once at service startup so the first requests do not race the database
    container.
    """
    with get_sync_connection(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")
            cur.fetchone()
    log.info("[DB READY] PostgreSQL reachable")


class PostgresPool(AbstractResourcePool):
    """
    Bounded pool of PostgreSQL connections backed by psycopg_pool.

    The psycopg pool is sized so that `max_size == capacity`; the in-use count,
    peak and exhaustion counters come from the shared handle bookkeeping.
    """

    def __init__(
        self,
        capacity: int,
        acquire_timeout: float,
        dsn: Optional[str] = None,
        min_size: int = 1,
        name: str = "postgres-pool",
        pool: Optional[ConnectionPool] = None,
    ) -> None:
        super().__init__(capacity=capacity, acquire_timeout=acquire_timeout, name=name)
        self._lock = threading.Lock()
        self._pool = pool or ConnectionPool(
            conninfo=dsn or build_dsn(),
            min_size=min(min_size, capacity),
            max_size=capacity,
            timeout=acquire_timeout,
            name=name,
            open=True,
        )
        log.info(
            f"[POOL OPEN] {name}",
            extra={"pool": name, "capacity": capacity, "acquire_timeout": acquire_timeout},
        )

    def _checkout(self, timeout: float) -> Any:
        try:
            return self._pool.getconn(timeout=timeout)
        except PoolTimeout as exc:
            raise self._exhausted(timeout) from exc

    def _checkin(self, connection: Any) -> None:
        self._pool.putconn(connection)

    def close(self) -> None:
        with self._lock:
            if self._pool is None:
                return
            try:
                self._pool.close()
            finally:
                log.info(f"[POOL CLOSED] {self.name}", extra={"pool": self.name})
                self._pool = None


__all__ = [
    "PostgresPool",
    "build_dsn",
    "get_sync_connection",
    "wait_for_database",
]
