"""FastAPI dependencies for payment routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CheckoutService, PaymentService


async def get_payment_service(request: Request) -> PaymentService:
    """Get payment service from app state."""
    service = getattr(request.app.state, "payment_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment service not available",
        )
    return service


async def get_checkout_service(request: Request) -> CheckoutService:
    """Get checkout service from app state."""
    service = getattr(request.app.state, "checkout_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Checkout service not available",
        )
    return service


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]
