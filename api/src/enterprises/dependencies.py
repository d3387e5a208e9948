"""FastAPI dependencies for enterprise routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import EnterpriseService


async def get_enterprise_service(request: Request) -> EnterpriseService:
    """Get enterprise service from app state."""
    service = getattr(request.app.state, "enterprise_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enterprise service not available",
        )
    return service


EnterpriseServiceDep = Annotated[EnterpriseService, Depends(get_enterprise_service)]
