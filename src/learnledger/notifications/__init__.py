"""Notifications - best-effort messages to learners and educators."""

from learnledger.notifications.dispatcher import (
    Notification,
    NotificationDispatcher,
    Notifier,
    NullNotifier,
)
from learnledger.notifications.exceptions import NotificationError

__all__ = [
    "Notification",
    "NotificationDispatcher",
    "NotificationError",
    "Notifier",
    "NullNotifier",
]
