"""Enterprise models and Cassandra schema.

An enterprise grants access to its employees in two ways:
- per-course assignments (``enterprise_course_access``)
- an enterprise-wide subscription covering every course
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from src.utils.dates import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


ENTERPRISES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enterprises (
    enterprise_id UUID PRIMARY KEY,
    name TEXT,
    subscription_active BOOLEAN,
    covers_all_courses BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

ENTERPRISE_COURSE_ACCESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enterprise_course_access (
    enterprise_id UUID,
    course_id UUID,
    is_active BOOLEAN,
    assigned_by UUID,
    assigned_at TIMESTAMP,
    PRIMARY KEY ((enterprise_id), course_id)
)
"""

ENTERPRISES_TABLES_CQL = [
    ENTERPRISES_TABLE_CQL,
    ENTERPRISE_COURSE_ACCESS_TABLE_CQL,
]


@dataclass
class Enterprise:
    name: str
    enterprise_id: UUID = field(default_factory=uuid4)
    subscription_active: bool = False
    covers_all_courses: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Enterprise":
        return cls(
            enterprise_id=row.enterprise_id,
            name=row.name,
            subscription_active=bool(row.subscription_active),
            covers_all_courses=bool(row.covers_all_courses),
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    @property
    def covers_every_course(self) -> bool:
        """Enterprise-wide subscription that includes all courses."""
        return self.subscription_active and self.covers_all_courses


@dataclass
class EnterpriseCourseAccess:
    enterprise_id: UUID
    course_id: UUID
    is_active: bool = True
    assigned_by: UUID | None = None
    assigned_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "EnterpriseCourseAccess":
        return cls(
            enterprise_id=row.enterprise_id,
            course_id=row.course_id,
            is_active=bool(row.is_active),
            assigned_by=row.assigned_by,
            assigned_at=ensure_utc_aware(row.assigned_at) or datetime.now(UTC),
        )
