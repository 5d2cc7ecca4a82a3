"""Notification sinks for user-facing toasts."""

import logging
from collections import deque
from datetime import datetime
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, Field

from src.core.config import settings
from src.domain.timestamps import utc_now


logger = logging.getLogger(__name__)


class NotificationSeverity(StrEnum):
    """How a notification should be presented."""

    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


class Notification(BaseModel):
    """A single toast message."""

    title: str
    message: str
    severity: NotificationSeverity = NotificationSeverity.SUCCESS
    created_at: datetime = Field(default_factory=utc_now)


class Notifier(Protocol):
    """One-way sink; the ledger never consumes a return value."""

    def notify(self, title: str, message: str, severity: NotificationSeverity = NotificationSeverity.SUCCESS) -> None:
        """Deliver a notification."""
        ...


_LOG_LEVELS = {
    NotificationSeverity.SUCCESS: logging.INFO,
    NotificationSeverity.INFO: logging.INFO,
    NotificationSeverity.ERROR: logging.WARNING,
}


class LoggingNotifier:
    """Writes notifications to the application log."""

    def notify(self, title: str, message: str, severity: NotificationSeverity = NotificationSeverity.SUCCESS) -> None:
        """Log the notification at a level matching its severity."""
        logger.log(_LOG_LEVELS[severity], "%s: %s", title, message, extra={"severity": str(severity)})


class QueueNotifier:
    """Keeps the most recent notifications until a client drains them."""

    def __init__(self, maxlen: int | None = None) -> None:
        self._queue: deque[Notification] = deque(maxlen=maxlen or settings.notification_queue_size)

    def notify(self, title: str, message: str, severity: NotificationSeverity = NotificationSeverity.SUCCESS) -> None:
        """Queue a notification, dropping the oldest when full."""
        self._queue.append(Notification(title=title, message=message, severity=severity))
        LoggingNotifier().notify(title, message, severity)

    def drain(self) -> list[Notification]:
        """Return and clear all pending notifications, oldest first."""
        items = list(self._queue)
        self._queue.clear()
        return items

    def __len__(self) -> int:
        return len(self._queue)
