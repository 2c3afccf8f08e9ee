"""
Postgres connection pooling for the main and Ozone databases.

Each ``DatabaseConnectionPool`` wraps a psycopg2 ``ThreadedConnectionPool``
created on first use. After three consecutive failures it refuses to hand
out connections for 30 seconds so a bad password or an unreachable host does
not get hammered by every request.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import psycopg2
from psycopg2 import pool

from lea_backend.config.database_config import DatabaseConfig
from lea_backend.utils.logger import logger

MAX_FAILURES = 3
BACKOFF_SECONDS = 30


class DatabaseUnavailableError(RuntimeError):
    """Raised when no connection can be handed out."""
    pass


class DatabaseConnectionPool:
    """Thread-safe, lazily created pool for one database URL."""

    def __init__(self, url: str, name: str = "main", min_connections: int = 1, max_connections: int = 5):
        self.name = name
        self._url = url
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._pool: Optional[pool.ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        self._failure_count = 0
        self._last_failure_time = 0.0

    def _in_backoff(self) -> bool:
        if self._failure_count < MAX_FAILURES:
            return False
        return time.time() - self._last_failure_time <= BACKOFF_SECONDS

    def _record_failure(self, what: str, error: Exception) -> None:
        self._failure_count += 1
        self._last_failure_time = time.time()
        logger.error("[%s pool] %s: %s", self.name, what, error)

    def _ensure_pool(self) -> pool.ThreadedConnectionPool:
        if self._pool is None:
            try:
                config = DatabaseConfig(self._url, name=self.name)
                logger.info(
                    "[%s pool] Connecting to %s (min=%d, max=%d)",
                    self.name, config.describe(), self._min_connections, self._max_connections,
                )
                self._pool = pool.ThreadedConnectionPool(
                    self._min_connections,
                    self._max_connections,
                    **config.get_connection_params()
                )
            except Exception as e:
                self._record_failure("Pool creation failed", e)
                raise DatabaseUnavailableError(f"Could not create the {self.name} database pool: {e}") from e
            self._failure_count = 0
        return self._pool

    def get_connection(self):
        """Check out a connection after checking it with ``SELECT 1``."""
        with self._lock:
            if self._in_backoff():
                raise DatabaseUnavailableError(
                    f"The {self.name} database pool is backing off after {self._failure_count} failures; "
                    f"retry in {BACKOFF_SECONDS} seconds"
                )

            active_pool = self._ensure_pool()
            conn = None
            try:
                conn = active_pool.getconn()
                if conn is None:
                    raise DatabaseUnavailableError("Pool returned no connection")
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
            except Exception as e:
                self._record_failure("Connection checkout failed", e)
                if conn is not None:
                    try:
                        active_pool.putconn(conn, close=True)
                    except Exception as put_error:
                        logger.warning("[%s pool] Could not discard dead connection: %s", self.name, put_error)
                if self._failure_count >= 2:
                    logger.warning("[%s pool] Discarding pool after repeated failures", self.name)
                    self._close_pool()
                raise DatabaseUnavailableError(f"Could not get a {self.name} database connection: {e}") from e
            return conn

    def return_connection(self, conn, close_connection: bool = False):
        if self._pool is None:
            return
        try:
            self._pool.putconn(conn, close=close_connection)
        except Exception as e:
            logger.error("[%s pool] Could not return connection: %s", self.name, e)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """
        Borrow a connection for one unit of work.

        Commits when the block succeeds and rolls back when it raises. Broken
        connections are closed instead of being returned to the pool.
        """
        conn = self.get_connection()
        broken = False
        try:
            yield conn
            conn.commit()
        except psycopg2.InterfaceError:
            broken = True
            raise
        except Exception:
            try:
                conn.rollback()
            except psycopg2.Error as e:
                broken = True
                logger.warning("[%s pool] Rollback failed: %s", self.name, e)
            raise
        finally:
            self.return_connection(conn, close_connection=broken)

    def _close_pool(self):
        if self._pool is None:
            return
        try:
            self._pool.closeall()
            logger.info("[%s pool] Closed", self.name)
        except Exception as e:
            logger.error("[%s pool] Error while closing: %s", self.name, e)
        finally:
            self._pool = None

    def close(self):
        with self._lock:
            self._close_pool()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats: Dict[str, Any] = {
                "pool_exists": self._pool is not None,
                "failure_count": self._failure_count,
                "last_failure_time": self._last_failure_time,
                "in_backoff": self._in_backoff(),
            }
            if self._pool is not None:
                stats.update(min_connections=self._min_connections, max_connections=self._max_connections)
            return stats
