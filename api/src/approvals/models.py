"""Approval request models and Cassandra schema.

Request status only moves through lightweight transactions conditioned on the
prior status:

    pending  -> approved | rejected
    rejected -> pending            (payments only, reopen)
    approved -> refunded           (payments only)
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from src.utils.dates import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


class SubjectType(str, Enum):
    COURSE_PUBLICATION = "course_publication"
    PAYMENT = "payment"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def outcome(self) -> RequestStatus:
        if self is Decision.APPROVE:
            return RequestStatus.APPROVED
        return RequestStatus.REJECTED


APPROVAL_REQUESTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.approval_requests (
    request_id UUID PRIMARY KEY,
    subject_type TEXT,
    subject_id UUID,
    requester_id UUID,
    status TEXT,
    actor_id UUID,
    notes TEXT,
    requested_at TIMESTAMP,
    decided_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

APPROVAL_STATUS_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS approval_requests_status_idx
ON {keyspace}.approval_requests (status)
"""

APPROVALS_TABLES_CQL = [
    APPROVAL_REQUESTS_TABLE_CQL,
    APPROVAL_STATUS_INDEX_CQL,
]


@dataclass
class ApprovalRequest:
    subject_type: SubjectType
    subject_id: UUID
    requester_id: UUID
    request_id: UUID = field(default_factory=uuid4)
    status: RequestStatus = RequestStatus.PENDING
    actor_id: UUID | None = None
    notes: str | None = None
    requested_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    decided_at: datetime | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "ApprovalRequest":
        return cls(
            request_id=row.request_id,
            subject_type=SubjectType(row.subject_type),
            subject_id=row.subject_id,
            requester_id=row.requester_id,
            status=RequestStatus(row.status),
            actor_id=row.actor_id,
            notes=row.notes,
            requested_at=ensure_utc_aware(row.requested_at) or datetime.now(UTC),
            decided_at=ensure_utc_aware(row.decided_at),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING
