"""HTTP endpoints for access grants.

Provides:
- GET  /v1/grants/my - Current user's active grants
- POST /v1/admin/grants - Grant course access
- POST /v1/admin/grants/revoke - Revoke course access
- GET  /v1/admin/grants/users/{user_id} - A user's grants
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import AdminUser, CurrentUser

from .dependencies import GrantServiceDep
from .schemas import (
    AccessGrantResponse,
    GrantAccessRequest,
    RevokeAccessRequest,
    RevokeAccessResponse,
)


router = APIRouter(prefix="/v1/grants", tags=["grants"])
admin_router = APIRouter(prefix="/v1/admin/grants", tags=["admin-grants"])


@router.get("/my", response_model=list[AccessGrantResponse])
async def list_my_grants(
    service: GrantServiceDep, current_user: CurrentUser
) -> list[AccessGrantResponse]:
    grants = await service.list_user_grants(current_user.id)
    return [AccessGrantResponse.from_grant(g) for g in grants]


@admin_router.post(
    "",
    response_model=AccessGrantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Grant course access to a user",
)
async def grant_access(
    body: GrantAccessRequest,
    service: GrantServiceDep,
    admin: AdminUser,
) -> AccessGrantResponse:
    grant = await service.grant(
        user_id=body.user_id,
        course_id=body.course_id,
        grant_type=body.grant_type,
        granted_by=admin.id,
        notes=body.notes,
    )
    return AccessGrantResponse.from_grant(grant)


@admin_router.post(
    "/revoke",
    response_model=RevokeAccessResponse,
    summary="Revoke course access",
)
async def revoke_access(
    body: RevokeAccessRequest,
    service: GrantServiceDep,
    _: AdminUser,
) -> RevokeAccessResponse:
    revoked = await service.revoke(body.user_id, body.course_id, reason=body.reason)
    return RevokeAccessResponse(revoked=revoked)


@admin_router.get("/users/{user_id}", response_model=list[AccessGrantResponse])
async def list_user_grants(
    user_id: UUID,
    service: GrantServiceDep,
    _: AdminUser,
    active_only: bool = True,
) -> list[AccessGrantResponse]:
    grants = await service.list_user_grants(user_id, active_only=active_only)
    return [AccessGrantResponse.from_grant(g) for g in grants]
