"""
Best-effort replication of progress to the festival backend.

Remote checkpoint writes are fire-and-forget: they are handed to a
worker pool and the caller moves on immediately.

Delivery semantics:
- at-most-once: each write is attempted once and never retried
- no ordering: two writes for the same email may land in either order,
  so a late write can clobber a newer one (last write wins server-side)
- failures are logged and dropped; local storage stays authoritative
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

logger = logging.getLogger(__name__)


class BestEffortReplicator:
    """
    Background task queue for remote writes.

    With ``max_workers=0`` writes run inline on the caller's thread, which
    keeps tests deterministic while preserving the swallow-on-failure rule.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="replicate")
            if max_workers > 0
            else None
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, label: str, func: Callable[..., Any], *args: Any) -> Future | None:
        """
        Schedule func(*args) without waiting for it.

        Args:
            label: Short description used in log lines
            func: Remote write to perform
            *args: Arguments for func

        Returns:
            The Future when running on the pool, None when run inline
        """
        if self._executor is None:
            self._run(label, func, *args)
            return None

        future = self._executor.submit(self._run, label, func, *args)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def drain(self, timeout: float | None = None) -> None:
        """Wait for writes submitted so far."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _run(label: str, func: Callable[..., Any], *args: Any) -> None:
        try:
            func(*args)
            logger.debug("Replicated %s", label)
        except Exception as e:
            logger.warning("Best-effort %s failed: %s", label, e)
