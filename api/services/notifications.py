"""Notification service functions."""

from typing import Any, Dict
import logging
import uuid

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.middleware.authorization import NotFound
from core.utils.datetime import now, ensure_utc
from database.models.notifications import Notification

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": str(notification.id),
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data or {},
        "is_read": notification.is_read,
        "read_at": ensure_utc(notification.read_at).isoformat()
        if notification.read_at
        else None,
        "created_at": ensure_utc(notification.created_at).isoformat(),
    }


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """List a user's notifications, newest first."""
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    unread_result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    result = await db.execute(
        query.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
    )
    return {
        "notifications": [serialize_notification(n) for n in result.scalars().all()],
        "total": total_result.scalar() or 0,
        "unread_count": unread_result.scalar() or 0,
    }


async def mark_as_read(
    db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
) -> Dict[str, Any]:
    """
    Mark one of the user's notifications as read.

    Raises:
        NotFound: If the notification does not exist or belongs to someone else
    """
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFound("Notification not found")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = now()
        await db.commit()
        await db.refresh(notification)
    return serialize_notification(notification)


async def mark_all_as_read(db: AsyncSession, user_id: uuid.UUID) -> Dict[str, int]:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=now())
    )
    await db.commit()
    return {"updated": result.rowcount or 0}
