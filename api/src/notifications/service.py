# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Notification service layer.

Business logic for:
- Persisting notifications and publishing them for real-time delivery
- Listing a user's notifications
- Marking notifications as read
- Deleting a notification
"""

import contextlib
import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from src.core.logging import get_logger
from src.core.redis import notification_channel

from .models import Notification


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = get_logger(__name__)

# Upper bound of rows scanned per user for filtering and counting
SCAN_LIMIT = 1000


class NotificationService:
    """Service for notification storage."""

    def __init__(self, session: "Session", keyspace: str, redis: "Redis | None" = None):
        """Initialize with Cassandra session and optional Redis."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_notification = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.notifications
            (user_id, created_at, notification_id, type, title, message,
             reference_id, reference_type, is_read, read_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_notifications = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.notifications
            WHERE user_id = ?
            ORDER BY created_at DESC
            LIMIT ?
        """)

        self._mark_read = self.session.prepare(f"""
            UPDATE {self.keyspace}.notifications
            SET is_read = ?, read_at = ?
            WHERE user_id = ? AND created_at = ? AND notification_id = ?
        """)

        self._delete_notification = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.notifications
            WHERE user_id = ? AND created_at = ? AND notification_id = ?
        """)

    async def create_notification(self, notification: Notification) -> Notification:
        """Persist a notification and publish it to the recipient's channel."""
        await self.session.aexecute(
            self._insert_notification,
            [
                notification.user_id,
                notification.created_at,
                notification.notification_id,
                notification.type.value,
                notification.title,
                notification.message,
                notification.reference_id,
                notification.reference_type,
                notification.is_read,
                notification.read_at,
            ],
        )
        await self._publish_notification(notification)
        return notification

    async def _publish_notification(self, notification: Notification) -> None:
        """Publish notification to Redis Pub/Sub for real-time delivery."""
        if not self.redis:
            return

        message = {"type": "notification", "data": notification.to_dict()}

        # Non-critical: don't fail notification creation if Redis publish fails
        with contextlib.suppress(Exception):
            await self.redis.publish(
                notification_channel(str(notification.user_id)), json.dumps(message)
            )

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 20,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Newest-first notifications for a user."""
        rows = await self.session.aexecute(
            self._get_notifications,
            [user_id, SCAN_LIMIT if unread_only else limit],
        )
        notifications = [Notification.from_row(row) for row in rows]
        if unread_only:
            notifications = [n for n in notifications if not n.is_read]
        return notifications[:limit]

    async def count_unread(self, user_id: UUID) -> int:
        rows = await self.session.aexecute(
            self._get_notifications, [user_id, SCAN_LIMIT]
        )
        return sum(1 for row in rows if not row.is_read)

    async def mark_as_read(
        self,
        user_id: UUID,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        """Mark notifications as read; all unread ones when no ids are given.

        Returns count of notifications marked as read.
        """
        now = datetime.now(UTC)
        wanted = set(notification_ids) if notification_ids is not None else None
        marked = 0

        rows = await self.session.aexecute(
            self._get_notifications, [user_id, SCAN_LIMIT]
        )
        for row in rows:
            if row.is_read:
                continue
            if wanted is not None and row.notification_id not in wanted:
                continue
            await self.session.aexecute(
                self._mark_read,
                [True, now, user_id, row.created_at, row.notification_id],
            )
            marked += 1

        return marked

    async def delete_notification(self, user_id: UUID, notification_id: UUID) -> bool:
        """Delete one of the user's notifications.

        Returns:
            False if the user has no such notification.
        """
        rows = await self.session.aexecute(
            self._get_notifications, [user_id, SCAN_LIMIT]
        )
        for row in rows:
            if row.notification_id != notification_id:
                continue
            await self.session.aexecute(
                self._delete_notification,
                [user_id, row.created_at, notification_id],
            )
            logger.info(
                "notification_deleted",
                target_user_id=str(user_id),
                notification_id=str(notification_id),
            )
            return True
        return False
