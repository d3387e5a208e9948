"""Notification API routes.

Endpoints for:
- GET  /v1/notifications - List the current user's notifications
- POST /v1/notifications/read - Mark notifications as read
- DELETE /v1/notifications/{id} - Delete one of the user's notifications
- POST /v1/notifications/broadcast - Send a notification to a target (admin)
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.auth.dependencies import AdminUser, CurrentUser
from src.core.exceptions import NotFoundError
from src.core.logging import get_logger
from src.notifications.dependencies import (
    NotificationDispatcherDep,
    NotificationServiceDep,
)
from src.notifications.dispatcher import NotificationEvent
from src.notifications.schemas import (
    BroadcastRequest,
    BroadcastResponse,
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
)


logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/notifications",
    tags=["notifications"],
)


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List user notifications",
    description="Newest-first notifications for the authenticated user.",
)
async def list_notifications(
    current_user: CurrentUser,
    service: NotificationServiceDep,
    limit: int = Query(default=20, ge=1, le=100, description="Items to return"),
    unread_only: bool = Query(default=False, description="Only show unread"),
) -> NotificationListResponse:
    notifications = await service.list_for_user(
        user_id=current_user.id,
        limit=limit,
        unread_only=unread_only,
    )
    return NotificationListResponse(
        items=[NotificationResponse.from_notification(n) for n in notifications],
        unread_count=await service.count_unread(current_user.id),
    )


@router.post(
    "/read",
    response_model=MarkReadResponse,
    summary="Mark notifications as read",
)
async def mark_notifications_read(
    body: MarkReadRequest,
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> MarkReadResponse:
    marked_count = await service.mark_as_read(
        user_id=current_user.id,
        notification_ids=body.notification_ids,
    )
    return MarkReadResponse(
        marked_count=marked_count,
        unread_count=await service.count_unread(current_user.id),
    )


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: UUID,
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> None:
    if not await service.delete_notification(current_user.id, notification_id):
        raise NotFoundError(
            "Notification not found", notification_id=str(notification_id)
        )


@router.post(
    "/broadcast",
    response_model=BroadcastResponse,
    summary="Send a notification to a user, enrollees, or everyone",
)
async def broadcast(
    body: BroadcastRequest,
    admin: AdminUser,
    dispatcher: NotificationDispatcherDep,
) -> BroadcastResponse:
    logger.info(
        "notification_broadcast_requested",
        target=body.target.kind,
        notification_type=body.type.value,
    )
    recipient_count = await dispatcher.dispatch(
        NotificationEvent(type=body.type, title=body.title, message=body.message),
        body.target,
    )
    return BroadcastResponse(recipient_count=recipient_count)
