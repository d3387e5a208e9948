"""FastAPI dependencies for authentication.

Provides:
- Current principal extraction from the Bearer token, checked against the
  stored user record so deactivation and role changes apply immediately
- Role requirements
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from src.auth.permissions import UserRole
from src.auth.schemas import Principal
from src.auth.security import decode_access_token
from src.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from the Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_user(
    request: Request,
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Principal:
    """Resolve the authenticated principal.

    The role and email come from the stored user, not from the token claims.

    Raises:
        HTTPException(401): If the token is missing, invalid or expired, or
            names an unknown user
        HTTPException(403): If the account is deactivated
        HTTPException(503): If the user service is not available
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
        user_id = UUID(str(payload["sub"]))
    except (JWTError, KeyError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    users = getattr(request.app.state, "user_service", None)
    if users is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User service not available",
        )

    user = await users.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    set_user_id(user.user_id)
    return Principal(id=user.user_id, role=user.role, email=user.email)


def require_role(*allowed_roles: UserRole):
    """Create a dependency requiring one of the given roles.

    Example:
        @router.post("/courses")
        async def create(user: Annotated[Principal, Depends(require_role(UserRole.TRAINER))]):
            ...
    """

    async def role_checker(
        user: Annotated[Principal, Depends(get_current_user)],
    ) -> Principal:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return role_checker


CurrentUser = Annotated[Principal, Depends(get_current_user)]
AdminUser = Annotated[Principal, Depends(require_role(UserRole.ADMIN))]
TrainerUser = Annotated[
    Principal, Depends(require_role(UserRole.TRAINER, UserRole.ADMIN))
]
