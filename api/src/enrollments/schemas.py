"""Pydantic schemas for enrollments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .models import Enrollment, EnrollmentState


class EnrollRequest(BaseModel):
    """Enroll in a session. ``user_id`` defaults to the caller; admins may set it."""

    model_config = ConfigDict(extra="forbid")

    session_id: UUID
    user_id: UUID | None = None


class CancelEnrollmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enrollment_id: UUID


class EnrollmentResponse(BaseModel):
    id: UUID
    session_id: UUID
    user_id: UUID
    course_id: UUID
    state: EnrollmentState
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_enrollment(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        return cls(
            id=enrollment.enrollment_id,
            session_id=enrollment.session_id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            state=enrollment.state,
            created_at=enrollment.created_at,
            updated_at=enrollment.updated_at,
        )
