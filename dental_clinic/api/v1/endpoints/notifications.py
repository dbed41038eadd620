"""Notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from dental_clinic.dependencies import CurrentPrincipal, DatabaseSession
from dental_clinic.schemas.notifications import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from dental_clinic.services.notification_service import DEFAULT_LIMIT, NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "/",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my notifications",
)
async def list_notifications(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=100),
) -> NotificationListResponse:
    """Latest notifications for the caller, newest first, with the unread count."""
    return await NotificationService(db).list_notifications(principal.id, limit=limit)


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Unread notification count",
)
async def unread_count(principal: CurrentPrincipal, db: DatabaseSession) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await NotificationService(db).unread_count(principal.id))


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark a notification as read",
)
async def mark_as_read(
    notification_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> NotificationResponse:
    """
    Mark one of the caller's notifications as read.

    Raises:
        NotFoundException: If the notification does not exist or belongs to someone else
    """
    return await NotificationService(db).mark_as_read(notification_id, principal.id)


@router.post(
    "/read-all",
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications as read",
)
async def mark_all_as_read(principal: CurrentPrincipal, db: DatabaseSession) -> dict[str, int]:
    updated = await NotificationService(db).mark_all_as_read(principal.id)
    return {"updated": updated}
