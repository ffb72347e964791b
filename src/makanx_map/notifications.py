"""Transient user-visible notifications (toasts)."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .events import EventHandler

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3.0


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    message: str
    kind: NotificationKind
    expires_at: float


class Notifier:
    """Holds the single toast currently on screen.

    A new toast replaces the previous one; ``current()`` drops it once its
    time-to-live has passed.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl
        self._clock = clock
        self._current: Notification | None = None
        self.on_notify = EventHandler()

    @property
    def ttl(self) -> float:
        return self._ttl

    def success(self, message: str) -> Notification:
        return self._push(message, NotificationKind.SUCCESS)

    def error(self, message: str) -> Notification:
        logger.warning(f"User-visible error: {message}")
        return self._push(message, NotificationKind.ERROR)

    def current(self) -> Notification | None:
        if self._current is not None and self._clock() >= self._current.expires_at:
            self._current = None
        return self._current

    def dismiss(self) -> None:
        self._current = None

    def _push(self, message: str, kind: NotificationKind) -> Notification:
        notification = Notification(message, kind, self._clock() + self._ttl)
        self._current = notification
        self.on_notify.invoke(notification)
        return notification
