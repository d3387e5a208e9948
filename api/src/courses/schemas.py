"""Pydantic schemas for courses and sessions.

Request and response models for:
- Courses: creation, listing, review submission
- Sessions: scheduling and occupancy
- Access decisions
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.entitlements.resolver import AccessDecision, AccessRule
from src.enrollments.capacity import Occupancy

from .models import ApprovalStatus, Course, Session


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )
    price: int = Field(0, ge=0, description="Price in cents (0 = free)")
    max_students: int = Field(..., ge=1, le=10000, description="Seats per session")


class CourseResponse(BaseModel):
    id: UUID
    trainer_id: UUID
    title: str
    description: str | None = None
    price: int
    is_free: bool
    max_students: int
    approval_status: ApprovalStatus
    under_review: bool
    created_at: datetime

    @classmethod
    def from_course(cls, course: Course) -> "CourseResponse":
        return cls(
            id=course.course_id,
            trainer_id=course.trainer_id,
            title=course.title,
            description=course.description,
            price=course.price,
            is_free=course.is_free,
            max_students=course.max_students,
            approval_status=course.approval_status,
            under_review=course.under_review,
            created_at=course.created_at,
        )


class AccessDecisionResponse(BaseModel):
    course_id: UUID
    allowed: bool
    rule: AccessRule | None = None
    reason: str | None = None

    @classmethod
    def from_decision(
        cls, course_id: UUID, decision: AccessDecision
    ) -> "AccessDecisionResponse":
        return cls(
            course_id=course_id,
            allowed=decision.allowed,
            rule=decision.rule,
            reason=decision.reason,
        )


# ==============================================================================
# Session Schemas
# ==============================================================================


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scheduled_at: datetime
    meeting_url: str | None = Field(None, max_length=500)


class SessionResponse(BaseModel):
    id: UUID
    course_id: UUID
    scheduled_at: datetime
    capacity: int
    occupied: int | None = Field(None, description="Confirmed seats, when requested")
    available: int | None = None
    meeting_url: str | None = None
    created_at: datetime

    @classmethod
    def from_session(
        cls, session: Session, occupancy: Occupancy | None = None
    ) -> "SessionResponse":
        return cls(
            id=session.session_id,
            course_id=session.course_id,
            scheduled_at=session.scheduled_at,
            capacity=session.capacity,
            occupied=occupancy.occupied if occupancy else None,
            available=occupancy.available if occupancy else None,
            meeting_url=session.meeting_url,
            created_at=session.created_at,
        )
