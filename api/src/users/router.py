"""HTTP endpoints for users.

Provides:
- GET  /v1/users/me - Current user's record
- Admin endpoints under /v1/admin/users for roles, subscriptions and deactivation
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import AdminUser, CurrentUser

from .dependencies import UserServiceDep
from .schemas import (
    ActivateSubscriptionRequest,
    CreateUserRequest,
    UpdateEnterpriseRequest,
    UpdateRoleRequest,
    UserResponse,
)


router = APIRouter(prefix="/v1/users", tags=["users"])
admin_router = APIRouter(prefix="/v1/admin/users", tags=["admin-users"])


@router.get("/me", response_model=UserResponse, summary="Get my user record")
async def get_me(service: UserServiceDep, current_user: CurrentUser) -> UserResponse:
    user = await service.require_user(current_user.id)
    return UserResponse.from_user(user)


@admin_router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    body: CreateUserRequest,
    service: UserServiceDep,
    _: AdminUser,
) -> UserResponse:
    user = await service.create_user(
        email=body.email,
        name=body.name,
        role=body.role,
        enterprise_id=body.enterprise_id,
    )
    return UserResponse.from_user(user)


@admin_router.get("", response_model=list[UserResponse], summary="List active users")
async def list_users(service: UserServiceDep, _: AdminUser) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in await service.list_active_users()]


@admin_router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
async def get_user(user_id: UUID, service: UserServiceDep, _: AdminUser) -> UserResponse:
    return UserResponse.from_user(await service.require_user(user_id))


@admin_router.patch("/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: UUID,
    body: UpdateRoleRequest,
    service: UserServiceDep,
    _: AdminUser,
) -> UserResponse:
    return UserResponse.from_user(await service.set_role(user_id, body.role))


@admin_router.patch("/{user_id}/enterprise", response_model=UserResponse)
async def update_enterprise(
    user_id: UUID,
    body: UpdateEnterpriseRequest,
    service: UserServiceDep,
    _: AdminUser,
) -> UserResponse:
    return UserResponse.from_user(
        await service.set_enterprise(user_id, body.enterprise_id)
    )


@admin_router.post("/{user_id}/subscription", response_model=UserResponse)
async def activate_subscription(
    user_id: UUID,
    body: ActivateSubscriptionRequest,
    service: UserServiceDep,
    _: AdminUser,
) -> UserResponse:
    """Activate a subscription without a payment (comp or manual fix)."""
    return UserResponse.from_user(
        await service.activate_subscription(user_id, body.plan)
    )


@admin_router.delete("/{user_id}/subscription", response_model=UserResponse)
async def cancel_subscription(
    user_id: UUID, service: UserServiceDep, _: AdminUser
) -> UserResponse:
    return UserResponse.from_user(await service.cancel_subscription(user_id))


@admin_router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: UUID, service: UserServiceDep, _: AdminUser
) -> UserResponse:
    return UserResponse.from_user(await service.deactivate(user_id))
