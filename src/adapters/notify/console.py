"""
Console notifier adapter - Implements Notifier protocol.

This module provides a console-based implementation of the domain's
notifier port, logging transient user notifications instead of
rendering them.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    """
    Implements Notifier protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Destructive notifications are logged at WARNING, the rest at INFO.
    """

    def notify(self, title: str, description: str, variant: str = "default") -> None:
        """
        Log a notification.

        Args:
            title: Short headline
            description: Detail text
            variant: "default" or "destructive"
        """
        level = logging.WARNING if variant == "destructive" else logging.INFO
        logger.log(level, "[NOTIFY] %s: %s", title, description)


class RecordingNotifier(ConsoleNotifier):
    """Console notifier that also keeps notifications for the API response."""

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []

    def notify(self, title: str, description: str, variant: str = "default") -> None:
        super().notify(title, description, variant)
        self.messages.append({"title": title, "description": description, "variant": variant})
