"""Notifications: storage, recipient fan-out and the HTTP surface.

Note: Router is imported directly in main.py to avoid circular imports.
"""

from src.notifications.dispatcher import NotificationDispatcher, NotificationEvent
from src.notifications.models import (
    NOTIFICATIONS_TABLES_CQL,
    Notification,
    NotificationType,
)
from src.notifications.service import NotificationService


__all__ = [
    "NOTIFICATIONS_TABLES_CQL",
    "Notification",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationService",
    "NotificationType",
]
