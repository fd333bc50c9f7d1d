"""
Integration tests for PostgresStorage.

Tests storage operations against a real PostgreSQL database.
Requires PostgreSQL to be running and DATABASE_URL to point at it.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.storage.memory import NamespacedStorage
from src.adapters.storage.postgres import PostgresStorage, run_migrations
from src.config.settings import get_settings
from src.domain.checkpoint import LocalCheckpoint
from src.domain.ports import Flow
from src.domain.state import RegistrationState

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def pool() -> ConnectionPool:
    """Create connection pool for integration tests."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
    )
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def storage(pool: ConnectionPool) -> PostgresStorage:
    """Create storage instance for each test."""
    return PostgresStorage(pool)


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> None:
    """Clean registration_storage table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM registration_storage")
        conn.commit()
    yield


class TestKeyValueOperations:
    def test_missing_key_returns_none(self, storage: PostgresStorage) -> None:
        assert storage.get("student_registration_step") is None

    def test_set_then_get(self, storage: PostgresStorage) -> None:
        storage.set("student_registration_step", "2")
        assert storage.get("student_registration_step") == "2"

    def test_set_upserts(self, storage: PostgresStorage) -> None:
        """Writing an existing key replaces the value (one row per key)."""
        storage.set("k", "1")
        storage.set("k", "2")

        assert storage.get("k") == "2"

    def test_remove(self, storage: PostgresStorage) -> None:
        storage.set("k", "1")
        storage.remove("k")
        storage.remove("k")
        assert storage.get("k") is None

    def test_concurrent_writes_keep_one_value(self, storage: PostgresStorage) -> None:
        """Concurrent writers to one key resolve to a single stored value."""
        values = [str(i) for i in range(10)]

        with ThreadPoolExecutor(max_workers=10) as executor:
            list(executor.map(lambda v: storage.set("race", v), values))

        assert storage.get("race") in values


class TestCheckpointOnPostgres:
    def test_state_survives_new_storage_instance(self, pool: ConnectionPool) -> None:
        """Progress written by one process is readable by the next."""
        state = RegistrationState(
            flow=Flow.STUDENT, current_step=3, completed_steps=[1, 2], email="a@b.co"
        )
        LocalCheckpoint(Flow.STUDENT, NamespacedStorage(PostgresStorage(pool), "s1")).write(state)

        restored = LocalCheckpoint(
            Flow.STUDENT, NamespacedStorage(PostgresStorage(pool), "s1")
        ).read()

        assert restored.current_step == 3
        assert restored.completed_steps == [1, 2]
        assert restored.email == "a@b.co"

    def test_migrations_are_idempotent(self, pool: ConnectionPool) -> None:
        assert run_migrations(pool) == run_migrations(pool)


class TestPurgeExpired:
    def backdate(self, pool: ConnectionPool, pattern: str, days: int) -> None:
        with pool.connection() as conn:
            conn.execute(
                "UPDATE registration_storage SET updated_at = NOW() - make_interval(days => %s) "
                "WHERE key LIKE %s",
                (days, pattern),
            )
            conn.commit()

    def test_abandoned_session_is_removed(
        self, pool: ConnectionPool, storage: PostgresStorage
    ) -> None:
        storage.set("old:student_registration_step", "2")
        storage.set("old:student_registration_session", "x")
        storage.set("new:student_registration_step", "1")
        self.backdate(pool, "old:%", 5)

        removed = storage.purge_expired(timedelta(days=3))

        assert removed == 2
        assert storage.get("old:student_registration_step") is None
        assert storage.get("new:student_registration_step") == "1"

    def test_recent_write_keeps_whole_session(
        self, pool: ConnectionPool, storage: PostgresStorage
    ) -> None:
        """One fresh key keeps the older keys of the same session alive."""
        storage.set("s1:student_registration_session", "x")
        self.backdate(pool, "s1:%", 5)
        storage.set("s1:student_registration_step", "3")

        assert storage.purge_expired(timedelta(days=3)) == 0
        assert storage.get("s1:student_registration_session") == "x"
