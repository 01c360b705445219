"""
User notifications emitted by the mutation coordinator.

Notifications are a side effect for the user interface ("Task added",
"Failed to delete task"). They are not part of the consistency contract.

Invariants:
    - A failed user-initiated mutation produces exactly one "error"
      notification
    - Notifier failures never affect local state
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)

INFO = "info"
ERROR = "error"


class Notifier(Protocol):
    """Sink for user-facing messages."""

    def notify(self, level: str, message: str, *, error: Optional[BaseException] = None) -> None: ...


class LoggingNotifier:
    """Default notifier: writes notifications to the log."""

    def notify(self, level: str, message: str, *, error: Optional[BaseException] = None) -> None:
        if level == ERROR:
            logger.error(message, extra={"error": str(error) if error else None})
        else:
            logger.info(message)


@dataclass(frozen=True)
class Notification:
    level: str
    message: str
    error: Optional[BaseException] = None


class RecordingNotifier:
    """Notifier that keeps every notification (testing helper)."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def notify(self, level: str, message: str, *, error: Optional[BaseException] = None) -> None:
        self.notifications.append(Notification(level, message, error))

    @property
    def errors(self) -> List[Notification]:
        return [n for n in self.notifications if n.level == ERROR]

    @property
    def infos(self) -> List[Notification]:
        return [n for n in self.notifications if n.level == INFO]

    def clear(self) -> None:
        self.notifications.clear()
