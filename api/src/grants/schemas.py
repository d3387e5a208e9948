"""Pydantic schemas for access grants."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import AccessGrant, GrantStatus, GrantType


class GrantAccessRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: UUID
    course_id: UUID
    grant_type: GrantType = GrantType.ADMIN_OVERRIDE
    notes: str | None = Field(default=None, max_length=1000)


class RevokeAccessRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: UUID
    course_id: UUID
    reason: str | None = Field(default=None, max_length=1000)


class RevokeAccessResponse(BaseModel):
    revoked: int


class AccessGrantResponse(BaseModel):
    id: UUID
    user_id: UUID
    course_id: UUID
    grant_type: GrantType
    status: GrantStatus
    granted_by: UUID | None = None
    payment_id: UUID | None = None
    notes: str | None = None
    created_at: datetime

    @classmethod
    def from_grant(cls, grant: AccessGrant) -> "AccessGrantResponse":
        return cls(
            id=grant.grant_id,
            user_id=grant.user_id,
            course_id=grant.course_id,
            grant_type=grant.grant_type,
            status=grant.status,
            granted_by=grant.granted_by,
            payment_id=grant.payment_id,
            notes=grant.notes,
            created_at=grant.created_at,
        )
