"""User models and Cassandra schema."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from src.auth.permissions import UserRole
from src.utils.dates import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


class SubscriptionPlan(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    user_id UUID PRIMARY KEY,
    email TEXT,
    name TEXT,
    role TEXT,
    is_active BOOLEAN,
    subscription_active BOOLEAN,
    subscription_plan TEXT,
    subscription_end_date TIMESTAMP,
    enterprise_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

USERS_TABLES_CQL = [
    USERS_TABLE_CQL,
]


# ==============================================================================
# Entity
# ==============================================================================


@dataclass
class User:
    """A platform user as seen by the access engine."""

    email: str
    name: str
    role: UserRole = UserRole.STUDENT
    user_id: UUID = field(default_factory=uuid4)
    is_active: bool = True
    subscription_active: bool = False
    subscription_plan: SubscriptionPlan | None = None
    subscription_end_date: datetime | None = None
    enterprise_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "User":
        """Create instance from Cassandra row."""
        plan = row.subscription_plan
        return cls(
            user_id=row.user_id,
            email=row.email,
            name=row.name,
            role=UserRole(row.role),
            is_active=bool(row.is_active),
            subscription_active=bool(row.subscription_active),
            subscription_plan=SubscriptionPlan(plan) if plan else None,
            subscription_end_date=ensure_utc_aware(row.subscription_end_date),
            enterprise_id=row.enterprise_id,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def has_active_subscription(self, now: datetime | None = None) -> bool:
        """Flag set and the end date, when present, not yet reached."""
        if not self.subscription_active:
            return False
        if self.subscription_end_date is None:
            return True
        return (now or datetime.now(UTC)) < self.subscription_end_date
