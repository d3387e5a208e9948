"""Pydantic schemas for enterprise administration."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Enterprise, EnterpriseCourseAccess


class CreateEnterpriseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    subscription_active: bool = False
    covers_all_courses: bool = False


class UpdateEnterpriseSubscriptionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subscription_active: bool
    covers_all_courses: bool = False


class AssignCourseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    course_id: UUID


class EnterpriseResponse(BaseModel):
    id: UUID
    name: str
    subscription_active: bool
    covers_all_courses: bool
    created_at: datetime

    @classmethod
    def from_enterprise(cls, enterprise: Enterprise) -> "EnterpriseResponse":
        return cls(
            id=enterprise.enterprise_id,
            name=enterprise.name,
            subscription_active=enterprise.subscription_active,
            covers_all_courses=enterprise.covers_all_courses,
            created_at=enterprise.created_at,
        )


class EnterpriseCourseResponse(BaseModel):
    enterprise_id: UUID
    course_id: UUID
    assigned_by: UUID | None = None
    assigned_at: datetime

    @classmethod
    def from_access(cls, access: EnterpriseCourseAccess) -> "EnterpriseCourseResponse":
        return cls(
            enterprise_id=access.enterprise_id,
            course_id=access.course_id,
            assigned_by=access.assigned_by,
            assigned_at=access.assigned_at,
        )
