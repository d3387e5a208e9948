"""Course and session models with Cassandra schema.

A course is owned by a trainer and priced in cents (0 = free). Its approval
status only changes through the approval workflow. Sessions are scheduled
occurrences of an approved course; their capacity is the course's
``max_students`` and their occupancy lives in the capacity ledger.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from src.utils.dates import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


class ApprovalStatus(str, Enum):
    """Course publication status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    course_id UUID PRIMARY KEY,
    trainer_id UUID,
    title TEXT,
    description TEXT,
    price INT,
    max_students INT,
    approval_status TEXT,
    review_request_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

SESSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.sessions (
    session_id UUID PRIMARY KEY,
    course_id UUID,
    scheduled_at TIMESTAMP,
    capacity INT,
    meeting_url TEXT,
    created_by UUID,
    created_at TIMESTAMP
)
"""

# Reverse lookup for listing a course's sessions
SESSIONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.sessions_by_course (
    course_id UUID,
    session_id UUID,
    scheduled_at TIMESTAMP,
    PRIMARY KEY ((course_id), session_id)
)
"""

COURSES_TABLES_CQL = [
    COURSES_TABLE_CQL,
    SESSIONS_TABLE_CQL,
    SESSIONS_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class Course:
    trainer_id: UUID
    title: str
    price: int
    max_students: int
    description: str | None = None
    course_id: UUID = field(default_factory=uuid4)
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    review_request_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Course":
        return cls(
            course_id=row.course_id,
            trainer_id=row.trainer_id,
            title=row.title,
            description=row.description,
            price=row.price or 0,
            max_students=row.max_students or 0,
            approval_status=ApprovalStatus(row.approval_status),
            review_request_id=row.review_request_id,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_approved(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED

    @property
    def under_review(self) -> bool:
        return self.review_request_id is not None


@dataclass
class Session:
    """A scheduled occurrence of a course."""

    course_id: UUID
    scheduled_at: datetime
    capacity: int
    session_id: UUID = field(default_factory=uuid4)
    meeting_url: str | None = None
    created_by: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Session":
        return cls(
            session_id=row.session_id,
            course_id=row.course_id,
            scheduled_at=ensure_utc_aware(row.scheduled_at) or datetime.now(UTC),
            capacity=row.capacity or 0,
            meeting_url=row.meeting_url,
            created_by=row.created_by,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )
