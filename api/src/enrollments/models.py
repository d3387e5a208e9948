"""Enrollment models and Cassandra schema.

``session_enrollments`` holds one row per (session, user) and is the authority
for the "at most one active enrollment" rule: it is only written with
lightweight transactions conditioned on the row's current state.
``enrollments_by_id`` and ``enrollments_by_user`` are lookup copies written
after each successful transition.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from src.utils.dates import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


class EnrollmentState(str, Enum):
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

SESSION_ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.session_enrollments (
    session_id UUID,
    user_id UUID,
    enrollment_id UUID,
    course_id UUID,
    state TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((session_id), user_id)
)
"""

ENROLLMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_id (
    enrollment_id UUID PRIMARY KEY,
    session_id UUID,
    user_id UUID,
    course_id UUID,
    state TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrollment_id UUID,
    session_id UUID,
    course_id UUID,
    state TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id), enrollment_id)
)
"""

ENROLLMENTS_TABLES_CQL = [
    SESSION_ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_ID_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity
# ==============================================================================


@dataclass
class Enrollment:
    """A user's seat in a session."""

    session_id: UUID
    user_id: UUID
    course_id: UUID
    state: EnrollmentState = EnrollmentState.REQUESTED
    enrollment_id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Enrollment":
        """Create instance from any of the enrollment tables."""
        return cls(
            enrollment_id=row.enrollment_id,
            session_id=row.session_id,
            user_id=row.user_id,
            course_id=row.course_id,
            state=EnrollmentState(row.state),
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    @property
    def is_active(self) -> bool:
        """Requested or Confirmed; blocks another enrollment for the same seat."""
        return self.state != EnrollmentState.CANCELLED
