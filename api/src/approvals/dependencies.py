"""FastAPI dependencies for approval routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ApprovalWorkflow


async def get_approval_workflow(request: Request) -> ApprovalWorkflow:
    """Get approval workflow from app state."""
    workflow = getattr(request.app.state, "approval_workflow", None)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Approval workflow not available",
        )
    return workflow


ApprovalWorkflowDep = Annotated[ApprovalWorkflow, Depends(get_approval_workflow)]
