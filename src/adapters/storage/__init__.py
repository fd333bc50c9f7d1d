"""Storage adapters - KeyValueStorage implementations."""

from .memory import InMemoryStorage, NamespacedStorage
from .postgres import PostgresStorage, run_migrations

__all__ = ["InMemoryStorage", "NamespacedStorage", "PostgresStorage", "run_migrations"]
