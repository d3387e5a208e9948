"""HTTP endpoints for approval requests (admin).

Provides:
- GET  /v1/approvals - List requests, filtered by status and subject type
- GET  /v1/approvals/{request_id} - Request details
- POST /v1/approvals/{request_id}/approve - Approve a pending request
- POST /v1/approvals/{request_id}/reject - Reject a pending request (notes required)
- POST /v1/approvals/{request_id}/reopen - Reopen a rejected payment request
"""

from uuid import UUID

from fastapi import APIRouter

from src.auth.dependencies import AdminUser, CurrentUser

from .dependencies import ApprovalWorkflowDep
from .models import Decision, RequestStatus, SubjectType
from .schemas import ApprovalRequestResponse, ApproveRequest, RejectRequest


router = APIRouter(prefix="/v1/approvals", tags=["approvals"])


@router.get("", response_model=list[ApprovalRequestResponse])
async def list_requests(
    workflow: ApprovalWorkflowDep,
    admin: AdminUser,
    status: RequestStatus | None = None,
    subject_type: SubjectType | None = None,
) -> list[ApprovalRequestResponse]:
    requests = await workflow.list_requests(status, subject_type)
    return [ApprovalRequestResponse.from_request(r) for r in requests]


@router.get("/{request_id}", response_model=ApprovalRequestResponse)
async def get_request(
    request_id: UUID,
    workflow: ApprovalWorkflowDep,
    admin: AdminUser,
) -> ApprovalRequestResponse:
    request = await workflow.require_request(request_id)
    return ApprovalRequestResponse.from_request(request)


# Admin role for decisions is enforced by ApprovalWorkflow
@router.post("/{request_id}/approve", response_model=ApprovalRequestResponse)
async def approve_request(
    request_id: UUID,
    workflow: ApprovalWorkflowDep,
    current_user: CurrentUser,
    body: ApproveRequest | None = None,
) -> ApprovalRequestResponse:
    request = await workflow.decide(
        request_id,
        current_user.id,
        current_user.role,
        Decision.APPROVE,
        body.notes if body else None,
    )
    return ApprovalRequestResponse.from_request(request)


@router.post("/{request_id}/reject", response_model=ApprovalRequestResponse)
async def reject_request(
    request_id: UUID,
    body: RejectRequest,
    workflow: ApprovalWorkflowDep,
    current_user: CurrentUser,
) -> ApprovalRequestResponse:
    request = await workflow.decide(
        request_id,
        current_user.id,
        current_user.role,
        Decision.REJECT,
        body.notes,
    )
    return ApprovalRequestResponse.from_request(request)


@router.post("/{request_id}/reopen", response_model=ApprovalRequestResponse)
async def reopen_request(
    request_id: UUID,
    workflow: ApprovalWorkflowDep,
    current_user: CurrentUser,
) -> ApprovalRequestResponse:
    request = await workflow.reopen(request_id, current_user.id, current_user.role)
    return ApprovalRequestResponse.from_request(request)
