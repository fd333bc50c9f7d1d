"""
Unit tests for the periodic purge of abandoned sessions.
"""

import asyncio
from contextlib import suppress
from datetime import timedelta
from unittest.mock import Mock

from src.api.main import purge_expired_sessions


def run_briefly(storage: Mock) -> None:
    async def scenario() -> None:
        task = asyncio.create_task(
            purge_expired_sessions(storage, timedelta(hours=72), interval_seconds=3600)
        )
        await asyncio.sleep(0.1)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    asyncio.run(scenario())


class TestPurgeExpiredSessions:
    def test_purges_on_start(self, caplog) -> None:
        storage = Mock()
        storage.purge_expired.return_value = 4

        with caplog.at_level("INFO", logger="src.api.main"):
            run_briefly(storage)

        storage.purge_expired.assert_called_once_with(timedelta(hours=72))
        assert "Purged 4 key(s) of expired sessions" in caplog.text

    def test_failure_is_logged_and_loop_continues(self, caplog) -> None:
        """A storage error does not end the purge loop."""
        storage = Mock()
        storage.purge_expired.side_effect = RuntimeError("database unavailable")

        run_briefly(storage)

        assert "Session purge failed: database unavailable" in caplog.text
