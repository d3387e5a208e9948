"""HTTP endpoints for enrollments.

Provides:
- POST /v1/enrollments - Enroll in a session
- POST /v1/enrollments/cancel - Cancel a confirmed enrollment
- GET  /v1/enrollments/my - Current user's enrollments
- GET  /v1/enrollments/{enrollment_id} - Enrollment details
- GET  /v1/sessions/{session_id}/enrollments - Session roster
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import CurrentUser
from src.auth.permissions import can_act_for, can_manage_course
from src.core.exceptions import ForbiddenError
from src.courses.dependencies import CourseServiceDep
from src.users.dependencies import UserServiceDep

from .dependencies import EnrollmentServiceDep
from .models import EnrollmentState
from .schemas import CancelEnrollmentRequest, EnrollmentResponse, EnrollRequest


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])
sessions_router = APIRouter(prefix="/v1/sessions", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a session",
)
async def enroll(
    body: EnrollRequest,
    service: EnrollmentServiceDep,
    users: UserServiceDep,
    current_user: CurrentUser,
) -> EnrollmentResponse:
    target_id = body.user_id or current_user.id
    if not can_act_for(current_user.id, current_user.role, target_id):
        raise ForbiddenError("Only admins can enroll other users")

    user = await users.require_user(target_id)
    enrollment = await service.enroll(user, body.session_id)
    return EnrollmentResponse.from_enrollment(enrollment)


@router.post(
    "/cancel",
    response_model=EnrollmentResponse,
    summary="Cancel an enrollment",
)
async def cancel_enrollment(
    body: CancelEnrollmentRequest,
    service: EnrollmentServiceDep,
    current_user: CurrentUser,
) -> EnrollmentResponse:
    enrollment = await service.cancel(
        body.enrollment_id, current_user.id, current_user.role
    )
    return EnrollmentResponse.from_enrollment(enrollment)


@router.get("/my", response_model=list[EnrollmentResponse])
async def list_my_enrollments(
    service: EnrollmentServiceDep,
    current_user: CurrentUser,
    state: EnrollmentState | None = None,
) -> list[EnrollmentResponse]:
    enrollments = await service.list_user_enrollments(current_user.id, state)
    return [EnrollmentResponse.from_enrollment(e) for e in enrollments]


@router.get("/{enrollment_id}", response_model=EnrollmentResponse)
async def get_enrollment(
    enrollment_id: UUID,
    service: EnrollmentServiceDep,
    current_user: CurrentUser,
) -> EnrollmentResponse:
    enrollment = await service.require_enrollment(enrollment_id)
    if not can_act_for(current_user.id, current_user.role, enrollment.user_id):
        raise ForbiddenError()
    return EnrollmentResponse.from_enrollment(enrollment)


@sessions_router.get(
    "/{session_id}/enrollments",
    response_model=list[EnrollmentResponse],
    summary="List a session's enrollments",
)
async def list_session_enrollments(
    session_id: UUID,
    service: EnrollmentServiceDep,
    courses: CourseServiceDep,
    current_user: CurrentUser,
    state: EnrollmentState | None = None,
) -> list[EnrollmentResponse]:
    session = await courses.require_session(session_id)
    course = await courses.require_course(session.course_id)
    if not can_manage_course(current_user.id, current_user.role, course.trainer_id):
        raise ForbiddenError("Only the course trainer or an admin can view the roster")

    enrollments = await service.list_session_enrollments(session_id, state)
    return [EnrollmentResponse.from_enrollment(e) for e in enrollments]
