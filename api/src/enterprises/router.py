"""Admin endpoints for enterprises (/v1/admin/enterprises)."""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import AdminUser

from .dependencies import EnterpriseServiceDep
from .schemas import (
    AssignCourseRequest,
    CreateEnterpriseRequest,
    EnterpriseCourseResponse,
    EnterpriseResponse,
    UpdateEnterpriseSubscriptionRequest,
)


admin_router = APIRouter(prefix="/v1/admin/enterprises", tags=["admin-enterprises"])


@admin_router.post(
    "",
    response_model=EnterpriseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_enterprise(
    body: CreateEnterpriseRequest,
    service: EnterpriseServiceDep,
    _: AdminUser,
) -> EnterpriseResponse:
    enterprise = await service.create_enterprise(
        name=body.name,
        subscription_active=body.subscription_active,
        covers_all_courses=body.covers_all_courses,
    )
    return EnterpriseResponse.from_enterprise(enterprise)


@admin_router.get("/{enterprise_id}", response_model=EnterpriseResponse)
async def get_enterprise(
    enterprise_id: UUID, service: EnterpriseServiceDep, _: AdminUser
) -> EnterpriseResponse:
    return EnterpriseResponse.from_enterprise(
        await service.require_enterprise(enterprise_id)
    )


@admin_router.patch("/{enterprise_id}/subscription", response_model=EnterpriseResponse)
async def update_subscription(
    enterprise_id: UUID,
    body: UpdateEnterpriseSubscriptionRequest,
    service: EnterpriseServiceDep,
    _: AdminUser,
) -> EnterpriseResponse:
    enterprise = await service.set_subscription(
        enterprise_id,
        active=body.subscription_active,
        covers_all_courses=body.covers_all_courses,
    )
    return EnterpriseResponse.from_enterprise(enterprise)


@admin_router.get(
    "/{enterprise_id}/courses", response_model=list[EnterpriseCourseResponse]
)
async def list_enterprise_courses(
    enterprise_id: UUID, service: EnterpriseServiceDep, _: AdminUser
) -> list[EnterpriseCourseResponse]:
    return [
        EnterpriseCourseResponse.from_access(a)
        for a in await service.list_courses(enterprise_id)
    ]


@admin_router.post(
    "/{enterprise_id}/courses",
    response_model=EnterpriseCourseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_course(
    enterprise_id: UUID,
    body: AssignCourseRequest,
    service: EnterpriseServiceDep,
    admin: AdminUser,
) -> EnterpriseCourseResponse:
    access = await service.assign_course(enterprise_id, body.course_id, admin.id)
    return EnterpriseCourseResponse.from_access(access)


@admin_router.delete(
    "/{enterprise_id}/courses/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def unassign_course(
    enterprise_id: UUID,
    course_id: UUID,
    service: EnterpriseServiceDep,
    admin: AdminUser,
) -> None:
    await service.unassign_course(enterprise_id, course_id, admin.id)
