"""HTTP endpoints for payments.

Provides:
- POST  /v1/payments - Start a course purchase or subscription
- GET   /v1/payments/my - Current user's payments
- GET   /v1/payments/{payment_id} - Payment details (owner or admin)
- PATCH /v1/payments/{payment_id} - Refund an approved payment (admin)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, status

from src.approvals.dependencies import ApprovalWorkflowDep
from src.auth.dependencies import CurrentUser
from src.auth.permissions import can_act_for
from src.core.exceptions import ForbiddenError
from src.users.dependencies import UserServiceDep

from .dependencies import CheckoutServiceDep, PaymentServiceDep
from .schemas import (
    CoursePurchaseRequest,
    CreatePaymentRequest,
    PaymentResponse,
    UpdatePaymentRequest,
)


router = APIRouter(prefix="/v1/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a payment awaiting admin approval",
)
async def create_payment(
    body: Annotated[CreatePaymentRequest, Body(discriminator="kind")],
    checkout: CheckoutServiceDep,
    users: UserServiceDep,
    current_user: CurrentUser,
) -> PaymentResponse:
    user = await users.require_user(current_user.id)
    if isinstance(body, CoursePurchaseRequest):
        payment = await checkout.initiate_course_purchase(user, body.course_id)
    else:
        payment = await checkout.initiate_subscription(user, body.plan)
    return PaymentResponse.from_payment(payment)


@router.get("/my", response_model=list[PaymentResponse])
async def list_my_payments(
    service: PaymentServiceDep, current_user: CurrentUser
) -> list[PaymentResponse]:
    payments = await service.list_user_payments(current_user.id)
    return [PaymentResponse.from_payment(p) for p in payments]


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    service: PaymentServiceDep,
    current_user: CurrentUser,
) -> PaymentResponse:
    payment = await service.require_payment(payment_id)
    if not can_act_for(current_user.id, current_user.role, payment.user_id):
        raise ForbiddenError()
    return PaymentResponse.from_payment(payment)


@router.patch("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: UUID,
    body: UpdatePaymentRequest,
    workflow: ApprovalWorkflowDep,
    current_user: CurrentUser,
) -> PaymentResponse:
    payment = await workflow.refund(
        payment_id, current_user.id, current_user.role, body.notes
    )
    return PaymentResponse.from_payment(payment)
