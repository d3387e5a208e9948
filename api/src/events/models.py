"""Domain events emitted by the enrollment and approval state machines.

Events are immutable facts published after the state change is persisted.
Consumers (the notification dispatcher) subscribe by event class.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, kw_only=True)
class EnrollmentConfirmed(DomainEvent):
    enrollment_id: UUID
    user_id: UUID
    session_id: UUID
    course_id: UUID


@dataclass(frozen=True, kw_only=True)
class EnrollmentCancelled(DomainEvent):
    enrollment_id: UUID
    user_id: UUID
    session_id: UUID
    course_id: UUID
    cancelled_by: UUID


@dataclass(frozen=True, kw_only=True)
class ApprovalSubmitted(DomainEvent):
    request_id: UUID
    subject_type: str
    subject_id: UUID
    requester_id: UUID


@dataclass(frozen=True, kw_only=True)
class ApprovalDecided(DomainEvent):
    """An approval request reached approved, rejected or refunded."""

    request_id: UUID
    subject_type: str
    subject_id: UUID
    requester_id: UUID
    outcome: str
    actor_id: UUID
    notes: str | None = None


@dataclass(frozen=True, kw_only=True)
class ApprovalReopened(DomainEvent):
    request_id: UUID
    subject_type: str
    subject_id: UUID
    requester_id: UUID
    actor_id: UUID
