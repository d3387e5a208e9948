"""Database models for notifications.

Notifications are persisted per recipient, newest first, and published on
the recipient's Redis channel when Redis is available.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.utils.dates import ensure_utc_aware


class NotificationType(str, Enum):
    """Types of notifications."""

    ENROLLMENT = "enrollment"
    CANCELLATION = "cancellation"
    APPROVAL = "approval"
    REJECTION = "rejection"
    REOPENED = "reopened"
    PAYMENT = "payment"
    REFUND = "refund"
    ANNOUNCEMENT = "announcement"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

NOTIFICATION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications (
    user_id UUID,
    created_at TIMESTAMP,
    notification_id UUID,
    type TEXT,
    title TEXT,
    message TEXT,
    reference_id UUID,
    reference_type TEXT,
    is_read BOOLEAN,
    read_at TIMESTAMP,
    PRIMARY KEY ((user_id), created_at, notification_id)
) WITH CLUSTERING ORDER BY (created_at DESC, notification_id ASC)
"""

NOTIFICATIONS_TABLES_CQL = [
    NOTIFICATION_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Notification:
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    reference_id: UUID | None = None
    reference_type: str | None = None
    notification_id: UUID = field(default_factory=uuid4)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        """Create Notification from Cassandra row."""
        return cls(
            notification_id=row.notification_id,
            user_id=row.user_id,
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            reference_id=row.reference_id,
            reference_type=row.reference_type,
            is_read=row.is_read or False,
            read_at=ensure_utc_aware(row.read_at),
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        """Payload published on the real-time channel."""
        return {
            "id": str(self.notification_id),
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "reference_id": str(self.reference_id) if self.reference_id else None,
            "reference_type": self.reference_type,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
        }
