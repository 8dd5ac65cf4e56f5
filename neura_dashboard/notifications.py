"""Toast messages and "insights ready" notifications queued per user."""

from __future__ import annotations

import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import List, Literal, Protocol

from neura_dashboard.config import settings
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="notifications")

ToastKind = Literal["success", "error", "info", "warning"]


@dataclass
class Toast:
    """A short-lived user-facing message."""
    message: str
    kind: ToastKind = "info"
    duration_ms: int = field(default_factory=lambda: settings.toast_duration_ms)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return asdict(self)


class ToastQueue:
    """Bounded, thread-safe queue of toasts waiting to be shown."""

    def __init__(self, max_items: int | None = None) -> None:
        self._items: deque[Toast] = deque(maxlen=max_items or settings.max_toasts)
        self._lock = threading.Lock()

    def push(self, toast: Toast) -> Toast:
        with self._lock:
            self._items.append(toast)
        return toast

    def success(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.push(Toast(message, "success", duration_ms or settings.toast_duration_ms))

    def error(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.push(Toast(message, "error", duration_ms or settings.toast_duration_ms))

    def info(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.push(Toast(message, "info", duration_ms or settings.toast_duration_ms))

    def drain(self) -> List[Toast]:
        """Return and remove every queued toast, oldest first."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class Notifier(Protocol):
    """Sink for desktop-style notifications."""

    def notify(self, title: str, body: str) -> None:
        """Deliver a notification."""


class QueueNotifier:
    """Deliver notifications as info toasts on the user's queue."""

    def __init__(self, queue: ToastQueue) -> None:
        self.queue = queue

    def notify(self, title: str, body: str) -> None:
        logger.info("Notification: %s", title)
        self.queue.info(f"{title}: {body}")
