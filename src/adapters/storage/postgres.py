"""
PostgreSQL storage adapter - Implements ExpiringStorage protocol.

This module provides a PostgreSQL-backed key/value store for wizard
progress using psycopg3 with raw SQL. Each storage key is one row;
writes are single-statement upserts so concurrent sessions writing the
same key resolve as last write wins, matching the checkpoint semantics.
"""

import logging
from datetime import timedelta
from pathlib import Path

from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)


class PostgresStorage:
    """
    Implements ExpiringStorage protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize storage with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get(self, key: str) -> str | None:
        sql = "SELECT value FROM registration_storage WHERE key = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (key,))
            row = cursor.fetchone()
            return row[0] if row is not None else None

    def set(self, key: str, value: str) -> None:
        sql = """
            INSERT INTO registration_storage (key, value, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (key) DO UPDATE
            SET value = EXCLUDED.value,
                updated_at = NOW()
        """

        with self._pool.connection() as conn:
            conn.execute(sql, (key, value))
            conn.commit()

    def remove(self, key: str) -> None:
        with self._pool.connection() as conn:
            conn.execute("DELETE FROM registration_storage WHERE key = %s", (key,))
            conn.commit()

    def purge_expired(self, max_age: timedelta) -> int:
        """
        Delete every session whose newest key is older than max_age.

        Keys are grouped by their "{session_id}:" prefix so an active
        session never loses part of its progress.

        Returns:
            Number of rows deleted
        """
        sql = """
            DELETE FROM registration_storage
            WHERE split_part(key, ':', 1) IN (
                SELECT split_part(key, ':', 1)
                FROM registration_storage
                GROUP BY split_part(key, ':', 1)
                HAVING MAX(updated_at) < NOW() - %s
            )
        """

        with self._pool.connection() as conn:
            cursor = conn.execute(sql, (max_age,))
            conn.commit()
            return cursor.rowcount


MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def run_migrations(pool: ConnectionPool, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """
    Create or update the registration_storage schema.

    Every ``*.sql`` file runs in filename order, each in its own
    transaction, on every startup; the files only use IF NOT EXISTS DDL.

    Returns:
        Names of the files that were applied

    Raises:
        RuntimeError: a file failed; later files are not run
    """
    sql_files = sorted(migrations_dir.glob("*.sql")) if migrations_dir.is_dir() else []
    if not sql_files:
        logger.warning("No storage migrations found in %s", migrations_dir)
        return []

    for sql_file in sql_files:
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
        except Exception as e:
            logger.error("Storage migration %s failed: %s", sql_file.name, e)
            raise RuntimeError(f"Storage migration failed: {sql_file.name}") from e
        logger.info("Applied storage migration %s", sql_file.name)

    return [sql_file.name for sql_file in sql_files]
