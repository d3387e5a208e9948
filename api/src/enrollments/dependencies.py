"""FastAPI dependencies for enrollment routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .capacity import CapacityLedger
from .service import EnrollmentService


async def get_enrollment_service(request: Request) -> EnrollmentService:
    """Get enrollment service from app state."""
    service = getattr(request.app.state, "enrollment_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrollment service not available",
        )
    return service


async def get_capacity_ledger(request: Request) -> CapacityLedger:
    """Get capacity ledger from app state."""
    ledger = getattr(request.app.state, "capacity_ledger", None)
    if ledger is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Capacity ledger not available",
        )
    return ledger


EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]
CapacityLedgerDep = Annotated[CapacityLedger, Depends(get_capacity_ledger)]
