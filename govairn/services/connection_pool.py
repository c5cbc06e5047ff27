"""
Database connection pooling.

Reuses psycopg2 connections across requests and backs off after repeated
connection failures instead of hammering the database.
"""

import time
import threading
from contextlib import contextmanager
from typing import Optional, Dict, Any

import psycopg2
from psycopg2 import pool

from govairn.utils.logger import logger
from govairn.config.database_config import get_database_config


class DatabaseConnectionPool:
    """Thread-safe database connection pool with failure handling."""

    def __init__(self, min_connections: int = 1, max_connections: int = 10):
        self._pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._last_failure_time = 0
        self._failure_count = 0
        self._max_failure_count = 3
        self._backoff_seconds = 30

    def _create_pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        connection_params = get_database_config().get_connection_params()

        logger.info("DatabaseConnectionPool: Creating connection pool (min=%d, max=%d)",
                    self._min_connections, self._max_connections)

        return psycopg2.pool.ThreadedConnectionPool(
            self._min_connections,
            self._max_connections,
            **connection_params
        )

    def _should_retry(self) -> bool:
        if self._failure_count < self._max_failure_count:
            return True
        return time.time() - self._last_failure_time > self._backoff_seconds

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.time()

    def get_connection(self):
        """Get a connection from the pool."""
        with self._lock:
            if not self._should_retry():
                raise RuntimeError(
                    f"Database connection pool in backoff mode. "
                    f"Too many failures ({self._failure_count}). "
                    f"Please wait {self._backoff_seconds} seconds before retrying."
                )

            if self._pool is None:
                try:
                    self._pool = self._create_pool()
                    self._failure_count = 0
                except Exception as e:
                    self._record_failure()
                    logger.error("DatabaseConnectionPool: Failed to create pool: %s", e)
                    raise RuntimeError(f"Failed to create database connection pool: {e}") from e

            try:
                conn = self._pool.getconn()
                if conn is None:
                    raise RuntimeError("No available connections in pool")

                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
                conn.rollback()
                return conn

            except Exception as e:
                self._record_failure()
                logger.error("DatabaseConnectionPool: Failed to get connection: %s", e)

                if self._failure_count >= 2:
                    logger.warning("DatabaseConnectionPool: Recreating pool due to persistent failures")
                    self._close_pool()

                raise RuntimeError(f"Failed to get database connection: {e}") from e

    def return_connection(self, conn, close_connection: bool = False):
        """Return a connection to the pool."""
        if self._pool is None:
            return

        try:
            self._pool.putconn(conn, close=close_connection)
        except Exception as e:
            logger.error("DatabaseConnectionPool: Error returning connection: %s", e)

    @contextmanager
    def transaction(self):
        """Yield a connection inside a transaction; commit on success, roll back on error."""
        conn = self.get_connection()
        broken = False
        try:
            yield conn
            conn.commit()
        except Exception:
            try:
                conn.rollback()
            except psycopg2.Error:
                broken = True
            raise
        finally:
            self.return_connection(conn, close_connection=broken or bool(conn.closed))

    def _close_pool(self):
        if self._pool is not None:
            try:
                self._pool.closeall()
                logger.info("DatabaseConnectionPool: Closed connection pool")
            except Exception as e:
                logger.error("DatabaseConnectionPool: Error closing pool: %s", e)
            finally:
                self._pool = None

    def close(self):
        """Close the connection pool."""
        with self._lock:
            self._close_pool()

    def get_stats(self) -> Dict[str, Any]:
        """Get connection pool statistics."""
        with self._lock:
            stats = {
                "pool_exists": self._pool is not None,
                "failure_count": self._failure_count,
                "last_failure_time": self._last_failure_time,
                "in_backoff": not self._should_retry()
            }
            if self._pool is not None:
                stats["min_connections"] = self._min_connections
                stats["max_connections"] = self._max_connections
            return stats


# Global connection pool instance
_connection_pool: Optional[DatabaseConnectionPool] = None
_pool_lock = threading.Lock()


def get_connection_pool() -> DatabaseConnectionPool:
    """Get the global connection pool instance."""
    global _connection_pool

    with _pool_lock:
        if _connection_pool is None:
            _connection_pool = DatabaseConnectionPool()
        return _connection_pool
