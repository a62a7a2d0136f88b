# pagecomposer/services/notification_service.py
# Per-session notification channel (toasts + page events). Each editor owns one; nothing is global.
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)

LEVELS = ("info", "success", "warning", "error")

EVENT_TOAST = "toast"
EVENT_PAGE_UPDATED = "page.updated"
EVENT_CONTENT_RECOVERED = "content.recovered"


@dataclass
class Notification:
    level: str
    message: str
    event: str = EVENT_TOAST
    detail: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[Notification], None]


class NotificationBus:
    def __init__(self, buffer_size: int = 50) -> None:
        # oldest notifications drop off once the buffer is full
        self._pending: Deque[Notification] = deque(maxlen=max(1, int(buffer_size)))
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, level: str, message: str, *, event: str = EVENT_TOAST, **detail: Any) -> Notification:
        if level not in LEVELS:
            raise ValueError(f"Unknown notification level: {level}")
        note = Notification(level=level, message=message, event=event, detail=detail)
        self._pending.append(note)
        for cb in list(self._subscribers):
            try:
                cb(note)
            except Exception:
                logger.exception("Notification subscriber failed for %r", message)
        return note

    def info(self, message: str, **detail: Any) -> Notification:
        return self.emit("info", message, **detail)

    def success(self, message: str, **detail: Any) -> Notification:
        return self.emit("success", message, **detail)

    def warning(self, message: str, **detail: Any) -> Notification:
        return self.emit("warning", message, **detail)

    def error(self, message: str, **detail: Any) -> Notification:
        return self.emit("error", message, **detail)

    def pending(self) -> List[Notification]:
        return list(self._pending)

    def drain(self) -> List[Notification]:
        out = list(self._pending)
        self._pending.clear()
        return out
