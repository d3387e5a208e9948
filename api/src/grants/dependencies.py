"""FastAPI dependencies for access grant routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AccessGrantService


async def get_grant_service(request: Request) -> AccessGrantService:
    """Get access grant service from app state."""
    service = getattr(request.app.state, "grant_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Access grant service not available",
        )
    return service


GrantServiceDep = Annotated[AccessGrantService, Depends(get_grant_service)]
