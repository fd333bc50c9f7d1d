"""
In-memory storage adapters - Implement KeyValueStorage protocol.

``InMemoryStorage`` keeps keys in a process-local dict.
``NamespacedStorage`` scopes any KeyValueStorage to one wizard session
by prefixing keys, so many sessions can share one backing store.
"""

import threading
import time
from collections.abc import Callable
from datetime import timedelta

from src.domain.ports import KeyValueStorage

NAMESPACE_SEPARATOR = ":"


def session_of(key: str) -> str:
    """Namespace a stored key belongs to (the key itself when unprefixed)."""
    return key.split(NAMESPACE_SEPARATOR, 1)[0]


class InMemoryStorage:
    """
    Implements ExpiringStorage protocol with a dict.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Contents are lost on restart.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._values: dict[str, str] = {}
        self._written_at: dict[str, float] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value
            self._written_at[key] = self._clock()

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
            self._written_at.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)

    def purge_expired(self, max_age: timedelta) -> int:
        """
        Remove every session none of whose keys was written within max_age.

        Returns:
            Number of keys removed
        """
        with self._lock:
            cutoff = self._clock() - max_age.total_seconds()
            newest: dict[str, float] = {}
            for key, written_at in self._written_at.items():
                session = session_of(key)
                newest[session] = max(newest.get(session, written_at), written_at)

            expired = [key for key in self._values if newest[session_of(key)] < cutoff]
            for key in expired:
                del self._values[key]
                del self._written_at[key]
            return len(expired)


class NamespacedStorage:
    """Prefixes every key with ``{namespace}:`` before delegating."""

    def __init__(self, inner: KeyValueStorage, namespace: str) -> None:
        self._inner = inner
        self._prefix = f"{namespace}{NAMESPACE_SEPARATOR}"

    def get(self, key: str) -> str | None:
        return self._inner.get(self._prefix + key)

    def set(self, key: str, value: str) -> None:
        self._inner.set(self._prefix + key, value)

    def remove(self, key: str) -> None:
        self._inner.remove(self._prefix + key)
