"""Pydantic schemas for payments."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.users.models import SubscriptionPlan

from .models import Payment, PaymentStatus, PaymentType


class CoursePurchaseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["course_purchase"]
    course_id: UUID


class SubscriptionPurchaseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["subscription"]
    plan: SubscriptionPlan


# Tagged on ``kind``
CreatePaymentRequest = CoursePurchaseRequest | SubscriptionPurchaseRequest


class UpdatePaymentRequest(BaseModel):
    """Only the transition to refunded is accepted."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["refunded"]
    notes: str | None = Field(default=None, max_length=2000)


class PaymentResponse(BaseModel):
    id: UUID
    user_id: UUID
    payment_type: PaymentType
    course_id: UUID | None = None
    plan: SubscriptionPlan | None = None
    amount: int
    status: PaymentStatus
    platform_fee: int | None = None
    trainer_share: int | None = None
    approval_request_id: UUID | None = None
    created_at: datetime

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.payment_id,
            user_id=payment.user_id,
            payment_type=payment.payment_type,
            course_id=payment.course_id,
            plan=payment.plan,
            amount=payment.amount,
            status=payment.status,
            platform_fee=payment.platform_fee,
            trainer_share=payment.trainer_share,
            approval_request_id=payment.approval_request_id,
            created_at=payment.created_at,
        )
