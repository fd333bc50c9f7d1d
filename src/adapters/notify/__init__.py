"""Notifier adapters."""

from .console import ConsoleNotifier, RecordingNotifier

__all__ = ["ConsoleNotifier", "RecordingNotifier"]
