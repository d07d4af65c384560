"""User-facing notifications for failed or rejected compressions."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .logging import get_logger

log = get_logger(__name__)


class Level(str, Enum):
    SUCCESS = "success"
    ALERT = "alert"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    message: str
    level: Level
    duration_ms: int = 3000


Notifier = Callable[[Notification], None]


def log_notifier(notification: Notification) -> None:
    log.info(
        "notify",
        title=notification.title,
        message=notification.message,
        level=notification.level.value,
    )


__all__ = ["Level", "Notification", "Notifier", "log_notifier"]
