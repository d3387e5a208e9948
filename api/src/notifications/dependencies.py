"""FastAPI dependencies for notification routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.notifications.dispatcher import NotificationDispatcher
from src.notifications.service import NotificationService


def get_notification_service(request: Request) -> NotificationService:
    """Get notification service from app state."""
    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification service not available",
        )
    return service


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    """Get notification dispatcher from app state."""
    dispatcher = getattr(request.app.state, "notification_dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification dispatcher not available",
        )
    return dispatcher


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
NotificationDispatcherDep = Annotated[
    NotificationDispatcher, Depends(get_notification_dispatcher)
]
