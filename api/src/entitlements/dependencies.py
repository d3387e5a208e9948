"""FastAPI dependencies for entitlement checks."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .resolver import EntitlementResolver


async def get_entitlement_resolver(request: Request) -> EntitlementResolver:
    """Get entitlement resolver from app state."""
    resolver = getattr(request.app.state, "entitlement_resolver", None)
    if resolver is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Entitlement resolver not available",
        )
    return resolver


EntitlementResolverDep = Annotated[EntitlementResolver, Depends(get_entitlement_resolver)]
