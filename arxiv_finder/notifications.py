"""Notifier abstraction for user-facing notifications."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Protocol for notification delivery."""

    def notify(self, title: str, body: str) -> None:
        """Deliver a notification.

        Args:
            title: Short title
            body: Message text
        """
        ...


class LogNotifier:
    """Notifier that writes notifications to the log."""

    def notify(self, title: str, body: str) -> None:
        """Log the notification at INFO level."""
        logger.info(f"[{title}] {body}")


class RecordingNotifier:
    """Notifier that records instead of delivering.

    Useful for testing and dry runs.
    """

    def __init__(self) -> None:
        """Initialize recording notifier."""
        self.sent: list[dict] = []

    def notify(self, title: str, body: str) -> None:
        """Record notification details."""
        self.sent.append({"title": title, "body": body})
