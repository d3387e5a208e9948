"""HTTP endpoints for courses and sessions.

Provides:
- POST /v1/courses - Create a course (trainer)
- GET  /v1/courses - List approved courses
- GET  /v1/courses/admin - List every course, by status (admin)
- GET  /v1/courses/{course_id} - Course details
- POST /v1/courses/{course_id}/submit - Submit for publication review
- GET  /v1/courses/{course_id}/access - Entitlement decision for the caller
- POST /v1/courses/{course_id}/sessions - Schedule a session
- GET  /v1/courses/{course_id}/sessions - List sessions
- GET  /v1/sessions/{session_id} - Session details with occupancy
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.approvals.dependencies import ApprovalWorkflowDep
from src.approvals.schemas import ApprovalRequestResponse
from src.auth.dependencies import AdminUser, CurrentUser, TrainerUser
from src.auth.permissions import can_manage_course
from src.core.exceptions import NotFoundError
from src.courses.dependencies import CourseServiceDep
from src.courses.models import ApprovalStatus
from src.courses.schemas import (
    AccessDecisionResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateSessionRequest,
    SessionResponse,
)
from src.enrollments.dependencies import CapacityLedgerDep
from src.entitlements.dependencies import EntitlementResolverDep
from src.users.dependencies import UserServiceDep


router_courses = APIRouter(prefix="/v1/courses", tags=["courses"])
router_sessions = APIRouter(prefix="/v1/sessions", tags=["sessions"])


# ==============================================================================
# Courses
# ==============================================================================


@router_courses.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    user: TrainerUser,
) -> CourseResponse:
    """Create a course (TRAINER or ADMIN). It is not listed until approved."""
    course = await course_service.create_course(
        trainer_id=user.id,
        title=data.title,
        price=data.price,
        max_students=data.max_students,
        description=data.description,
    )
    return CourseResponse.from_course(course)


@router_courses.get(
    "",
    response_model=list[CourseResponse],
    summary="List approved courses",
)
async def list_approved_courses(course_service: CourseServiceDep) -> list[CourseResponse]:
    courses = await course_service.list_courses(status=ApprovalStatus.APPROVED)
    return [CourseResponse.from_course(c) for c in courses]


@router_courses.get(
    "/admin",
    response_model=list[CourseResponse],
    summary="List all courses (admin)",
)
async def list_all_courses(
    course_service: CourseServiceDep,
    admin: AdminUser,
    approval_status: ApprovalStatus | None = None,
) -> list[CourseResponse]:
    courses = await course_service.list_courses(status=approval_status)
    return [CourseResponse.from_course(c) for c in courses]


@router_courses.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course details",
)
async def get_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: CurrentUser,
) -> CourseResponse:
    """Unapproved courses are only visible to their trainer and admins."""
    course = await course_service.require_course(course_id)
    if not course.is_approved and not can_manage_course(
        user.id, user.role, course.trainer_id
    ):
        raise NotFoundError("Course not found", course_id=str(course_id))
    return CourseResponse.from_course(course)


@router_courses.post(
    "/{course_id}/submit",
    response_model=ApprovalRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a course for publication review",
)
async def submit_course(
    course_id: UUID,
    workflow: ApprovalWorkflowDep,
    user: TrainerUser,
) -> ApprovalRequestResponse:
    request = await workflow.submit_course(course_id, user.id, user.role)
    return ApprovalRequestResponse.from_request(request)


@router_courses.get(
    "/{course_id}/access",
    response_model=AccessDecisionResponse,
    summary="Check whether the caller may enroll in the course",
)
async def check_access(
    course_id: UUID,
    course_service: CourseServiceDep,
    users: UserServiceDep,
    resolver: EntitlementResolverDep,
    current_user: CurrentUser,
) -> AccessDecisionResponse:
    course = await course_service.require_course(course_id)
    user = await users.require_user(current_user.id)
    decision = await resolver.resolve(user, course)
    return AccessDecisionResponse.from_decision(course_id, decision)


# ==============================================================================
# Sessions
# ==============================================================================


@router_courses.post(
    "/{course_id}/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a session",
)
async def create_session(
    course_id: UUID,
    data: CreateSessionRequest,
    course_service: CourseServiceDep,
    user: TrainerUser,
) -> SessionResponse:
    session = await course_service.create_session(
        course_id=course_id,
        actor_id=user.id,
        actor_role=user.role,
        scheduled_at=data.scheduled_at,
        meeting_url=data.meeting_url,
    )
    return SessionResponse.from_session(session)


@router_courses.get(
    "/{course_id}/sessions",
    response_model=list[SessionResponse],
    summary="List a course's sessions",
)
async def list_sessions(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: CurrentUser,
) -> list[SessionResponse]:
    await course_service.require_course(course_id)
    sessions = await course_service.list_sessions(course_id)
    return [SessionResponse.from_session(s) for s in sessions]


@router_sessions.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get session details with occupancy",
)
async def get_session(
    session_id: UUID,
    course_service: CourseServiceDep,
    ledger: CapacityLedgerDep,
    user: CurrentUser,
) -> SessionResponse:
    session = await course_service.require_session(session_id)
    occupancy = await ledger.occupancy(session_id)
    return SessionResponse.from_session(session, occupancy)
