"""Access grant models and Cassandra schema.

A grant is an explicit entitlement of one user to one course:
- PURCHASE: created when a course-purchase payment is approved
- ENTERPRISE: assigned to an individual employee by an admin
- ADMIN_OVERRIDE: manual grant by an admin

Grants never expire on their own; they stay active until revoked.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from src.utils.dates import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


class GrantType(str, Enum):
    PURCHASE = "purchase"
    ENTERPRISE = "enterprise"
    ADMIN_OVERRIDE = "admin_override"


class GrantStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ACCESS_GRANTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.access_grants (
    user_id UUID,
    course_id UUID,
    grant_id UUID,
    grant_type TEXT,
    status TEXT,
    granted_by UUID,
    payment_id UUID,
    notes TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id, grant_id)
) WITH CLUSTERING ORDER BY (course_id ASC, grant_id DESC)
"""

GRANTS_TABLES_CQL = [
    ACCESS_GRANTS_TABLE_CQL,
]


# ==============================================================================
# Entity
# ==============================================================================


@dataclass
class AccessGrant:
    """A user's explicit entitlement to a course."""

    user_id: UUID
    course_id: UUID
    grant_type: GrantType
    status: GrantStatus = GrantStatus.ACTIVE
    grant_id: UUID = field(default_factory=uuid4)
    granted_by: UUID | None = None
    payment_id: UUID | None = None
    notes: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "AccessGrant":
        """Create instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            grant_id=row.grant_id,
            grant_type=GrantType(row.grant_type),
            status=GrantStatus(row.status),
            granted_by=row.granted_by,
            payment_id=row.payment_id,
            notes=row.notes,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def is_active(self) -> bool:
        return self.status == GrantStatus.ACTIVE
