"""Payment models and Cassandra schema.

A payment's ``status`` mirrors the status of its approval request. It is
written by the approval workflow after the request transition succeeds; the
request row stays the authority.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from src.users.models import SubscriptionPlan
from src.utils.dates import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Row


class PaymentType(str, Enum):
    COURSE_PURCHASE = "course_purchase"
    SUBSCRIPTION = "subscription"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"


PAYMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments (
    payment_id UUID PRIMARY KEY,
    user_id UUID,
    payment_type TEXT,
    course_id UUID,
    trainer_id UUID,
    plan TEXT,
    amount INT,
    status TEXT,
    platform_fee INT,
    trainer_share INT,
    approval_request_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

PAYMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments_by_user (
    user_id UUID,
    payment_id UUID,
    created_at TIMESTAMP,
    PRIMARY KEY ((user_id), payment_id)
)
"""

PAYMENTS_TABLES_CQL = [
    PAYMENTS_TABLE_CQL,
    PAYMENTS_BY_USER_TABLE_CQL,
]


@dataclass
class Payment:
    """A payment awaiting, or past, admin review. Amounts are in cents."""

    user_id: UUID
    payment_type: PaymentType
    amount: int
    payment_id: UUID = field(default_factory=uuid4)
    course_id: UUID | None = None
    trainer_id: UUID | None = None
    plan: SubscriptionPlan | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    platform_fee: int | None = None
    trainer_share: int | None = None
    approval_request_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Payment":
        return cls(
            payment_id=row.payment_id,
            user_id=row.user_id,
            payment_type=PaymentType(row.payment_type),
            course_id=row.course_id,
            trainer_id=row.trainer_id,
            plan=SubscriptionPlan(row.plan) if row.plan else None,
            amount=row.amount or 0,
            status=PaymentStatus(row.status),
            platform_fee=row.platform_fee,
            trainer_share=row.trainer_share,
            approval_request_id=row.approval_request_id,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    @property
    def is_course_purchase(self) -> bool:
        return self.payment_type == PaymentType.COURSE_PURCHASE
