"""Pydantic schemas for approval requests."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import ApprovalRequest, RequestStatus, SubjectType


class ApproveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notes: str = Field(..., max_length=2000)


class ApprovalRequestResponse(BaseModel):
    id: UUID
    subject_type: SubjectType
    subject_id: UUID
    requester_id: UUID
    status: RequestStatus
    actor_id: UUID | None = None
    notes: str | None = None
    requested_at: datetime
    decided_at: datetime | None = None

    @classmethod
    def from_request(cls, request: ApprovalRequest) -> "ApprovalRequestResponse":
        return cls(
            id=request.request_id,
            subject_type=request.subject_type,
            subject_id=request.subject_id,
            requester_id=request.requester_id,
            status=request.status,
            actor_id=request.actor_id,
            notes=request.notes,
            requested_at=request.requested_at,
            decided_at=request.decided_at,
        )
