"""User-facing notifications (the UI's toast channel).

Stores and guards never print; they hand short messages to a ``Notifier``.
The UI layer supplies its own implementation; ``LoggingNotifier`` is the
default and ``CollectingNotifier`` buffers messages for polling adapters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class NoticeLevel(Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class Notifier(Protocol):
    def notify(self, level: NoticeLevel, message: str) -> None: ...


class LoggingNotifier:
    """Writes notices to the ``mindpal.notify`` logger."""

    _LEVELS = {
        NoticeLevel.SUCCESS: logging.INFO,
        NoticeLevel.INFO: logging.INFO,
        NoticeLevel.ERROR: logging.WARNING,
    }

    def notify(self, level: NoticeLevel, message: str) -> None:
        logger.log(self._LEVELS[level], "[%s] %s", level.value, message)


class CollectingNotifier:
    """Keeps notices in memory until drained."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, level: NoticeLevel, message: str) -> None:
        self.notices.append(Notice(level, message))

    def drain(self) -> list[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def messages(self, level: NoticeLevel | None = None) -> list[str]:
        return [n.message for n in self.notices if level is None or n.level is level]
