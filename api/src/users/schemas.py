"""Pydantic schemas for user administration."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.auth.permissions import UserRole

from .models import SubscriptionPlan, User


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., min_length=3, max_length=254)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.STUDENT
    enterprise_id: UUID | None = None


class UpdateRoleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: UserRole


class UpdateEnterpriseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enterprise_id: UUID | None = None


class ActivateSubscriptionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plan: SubscriptionPlan = SubscriptionPlan.MONTHLY


class UserResponse(BaseModel):
    """User as exposed to admins and to the user themselves."""

    id: UUID
    email: str
    name: str
    role: UserRole
    is_active: bool
    subscription_active: bool = Field(
        ..., description="Whether the subscription currently grants access"
    )
    subscription_plan: SubscriptionPlan | None = None
    subscription_end_date: datetime | None = None
    enterprise_id: UUID | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.user_id,
            email=user.email,
            name=user.name,
            role=user.role,
            is_active=user.is_active,
            subscription_active=user.has_active_subscription(),
            subscription_plan=user.subscription_plan,
            subscription_end_date=user.subscription_end_date,
            enterprise_id=user.enterprise_id,
            created_at=user.created_at,
        )
