"""
Notification sinks: user-visible success/error messages.

Sinks are fire-and-forget. A failing sink never affects the caller.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Protocol

from .schema import NotificationKind

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, kind: NotificationKind, title: str, message: str) -> None: ...


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    title: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp,
        }


class CollectingSink:
    """Keeps notifications in memory; the HTTP layer returns them as toasts."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, kind: NotificationKind, title: str, message: str) -> None:
        self.notifications.append(Notification(kind, title, message))

    def drain(self) -> List[Notification]:
        out, self.notifications = self.notifications, []
        return out


def safe_notify(sink: NotificationSink, kind: NotificationKind, title: str, message: str) -> None:
    """Deliver a notification, logging instead of raising if the sink fails."""
    try:
        sink.notify(kind, title, message)
    except Exception as e:
        logger.error(f"Notification sink failed ({title}: {message}): {e}")
