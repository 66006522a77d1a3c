"""Notification endpoints for the current user."""

import uuid

from fastapi import APIRouter, Depends, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_active_user
from api.services import notifications as notification_service
from database.engine import get_db
from database.models.users import User

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "",
    summary="List Notifications",
    description="List the caller's notifications, newest first.",
)
async def list_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.list_notifications(
        db, current_user.id, unread_only, limit, offset
    )


@router.post(
    "/read-all",
    summary="Mark All Read",
    description="Mark every unread notification of the caller as read.",
)
async def mark_all_as_read(
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.mark_all_as_read(db, current_user.id)


@router.post(
    "/{notification_id}/read",
    summary="Mark Read",
    description="Mark one of the caller's notifications as read.",
)
async def mark_as_read(
    notification_id: uuid.UUID = Path(..., description="Notification ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.mark_as_read(db, current_user.id, notification_id)
