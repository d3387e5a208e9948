"""Pydantic schemas for notifications.

Request and response models for notification operations.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.notifications.dispatcher import TargetSelector
from src.notifications.models import Notification, NotificationType


# ==============================================================================
# Response Schemas
# ==============================================================================


class NotificationResponse(BaseModel):
    """Single notification response."""

    id: UUID = Field(description="Notification ID")
    type: NotificationType = Field(description="Notification type")
    title: str = Field(description="Notification title")
    message: str = Field(description="Notification message")
    reference: dict | None = Field(None, description="Reference to related record")
    is_read: bool = Field(description="Whether notification was read")
    read_at: datetime | None = Field(None, description="When notification was read")
    created_at: datetime = Field(description="When notification was created")

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        """Create response from notification entity."""
        reference = None
        if notification.reference_id:
            reference = {
                "id": notification.reference_id,
                "type": notification.reference_type,
            }

        return cls(
            id=notification.notification_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            reference=reference,
            is_read=notification.is_read,
            read_at=notification.read_at,
            created_at=notification.created_at,
        )


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    unread_count: int = Field(ge=0)


class MarkReadResponse(BaseModel):
    marked_count: int = Field(ge=0)
    unread_count: int = Field(ge=0)


class BroadcastResponse(BaseModel):
    recipient_count: int = Field(ge=0, description="Recipients a notification was stored for")


# ==============================================================================
# Request Schemas
# ==============================================================================


class MarkReadRequest(BaseModel):
    """Omit ``notification_ids`` to mark everything as read."""

    model_config = ConfigDict(extra="forbid")

    notification_ids: list[UUID] | None = Field(default=None, max_length=100)


class BroadcastRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target: TargetSelector
    message: str = Field(..., min_length=1, max_length=2000)
    type: NotificationType = NotificationType.ANNOUNCEMENT
    title: str = Field(default="Announcement", min_length=1, max_length=200)
