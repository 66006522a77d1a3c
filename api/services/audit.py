"""Audit trail: best-effort writes and transparency queries."""

from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
import logging
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.side_effects import fire_and_log, SideEffectOutcome
from core.utils.datetime import days_ago, ensure_utc, iso_day
from database.engine import AsyncSessionLocal
from database.models.audit import (
    AuditLog,
    AuditActionType,
    AuditCategory,
    TargetResourceType,
)
from database.models.privacy import ProfileView

logger = logging.getLogger(__name__)


class AuditTrail:
    """
    Append-only audit writer.

    Every entry is written in its own short-lived session so that a failed
    write cannot roll back the caller's transaction.
    """

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def write(
        self,
        *,
        action_type: AuditActionType,
        category: AuditCategory,
        description: str,
        user_id: Optional[uuid.UUID] = None,
        target_user_id: Optional[uuid.UUID] = None,
        target_resource_id: Optional[Any] = None,
        target_resource_type: Optional[TargetResourceType] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AuditLog:
        """Write one audit entry. Raises on failure."""
        entry = AuditLog(
            user_id=user_id,
            action_type=action_type,
            action_category=category,
            description=description,
            target_user_id=target_user_id,
            target_resource_id=str(target_resource_id) if target_resource_id else None,
            target_resource_type=target_resource_type,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
        )
        async with self.session_factory() as session:
            session.add(entry)
            await session.commit()
        return entry

    async def record(self, **kwargs: Any) -> SideEffectOutcome:
        """Write an audit entry, logging instead of raising on failure."""
        return await fire_and_log(
            "audit_log",
            lambda: self.write(**kwargs),
            action_type=kwargs.get("action_type"),
            user_id=kwargs.get("user_id"),
        )


def _involving(user_id: uuid.UUID):
    return or_(AuditLog.user_id == user_id, AuditLog.target_user_id == user_id)


def serialize_audit_entry(entry: AuditLog) -> Dict[str, Any]:
    return {
        "id": str(entry.id),
        "user_id": str(entry.user_id) if entry.user_id else None,
        "action_type": entry.action_type.value,
        "action_category": entry.action_category.value,
        "description": entry.description,
        "target_user_id": str(entry.target_user_id) if entry.target_user_id else None,
        "target_resource_id": entry.target_resource_id,
        "target_resource_type": entry.target_resource_type.value
        if entry.target_resource_type
        else None,
        "metadata": entry.details or {},
        "performed_at": ensure_utc(entry.performed_at).isoformat(),
    }


async def get_audit_log(
    db: AsyncSession,
    user_id: uuid.UUID,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    action_types: Sequence[AuditActionType] = (),
    categories: Sequence[AuditCategory] = (),
    limit: int = 100,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    Get audit entries performed by or targeting a user, newest first.

    Args:
        db: Database session
        user_id: User whose trail is read
        start_date: Inclusive lower bound on performed_at
        end_date: Inclusive upper bound on performed_at
        action_types: Only these action types (all if empty)
        categories: Only these categories (all if empty)
        limit: Page size
        offset: Page offset

    Returns:
        Dictionary with ``logs`` and ``total``
    """
    query = select(AuditLog).where(_involving(user_id))
    if start_date:
        query = query.where(AuditLog.performed_at >= start_date)
    if end_date:
        query = query.where(AuditLog.performed_at <= end_date)
    if action_types:
        query = query.where(AuditLog.action_type.in_(list(action_types)))
    if categories:
        query = query.where(AuditLog.action_category.in_(list(categories)))

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    result = await db.execute(
        query.order_by(AuditLog.performed_at.desc()).limit(limit).offset(offset)
    )
    return {
        "logs": [serialize_audit_entry(e) for e in result.scalars().all()],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


async def get_activity_timeline(
    db: AsyncSession, user_id: uuid.UUID, days: int = 30
) -> Dict[str, List[Dict[str, Any]]]:
    """Get the last ``days`` days of activity grouped by ISO date, newest first."""
    result = await db.execute(
        select(AuditLog)
        .where(_involving(user_id), AuditLog.performed_at >= days_ago(days))
        .order_by(AuditLog.performed_at.desc())
    )
    timeline: Dict[str, List[Dict[str, Any]]] = {}
    for entry in result.scalars().all():
        timeline.setdefault(iso_day(entry.performed_at), []).append(
            serialize_audit_entry(entry)
        )
    return timeline


def _empty_day() -> Dict[str, int]:
    return {
        "profile_views": 0,
        "reference_activities": 0,
        "privacy_changes": 0,
        "data_access": 0,
        "total_activities": 0,
    }


async def get_transparency_analytics(
    db: AsyncSession, user_id: uuid.UUID, days: int = 30
) -> Dict[str, Any]:
    """
    Get analytics for the transparency dashboard.

    Returns:
        Dictionary with received profile views, activity counts by action
        type, daily stats and totals
    """
    since = days_ago(days)

    views_result = await db.execute(
        select(ProfileView)
        .where(ProfileView.candidate_id == user_id, ProfileView.viewed_at >= since)
        .order_by(ProfileView.viewed_at.desc())
    )
    profile_views = views_result.scalars().all()

    activities_result = await db.execute(
        select(AuditLog)
        .where(_involving(user_id), AuditLog.performed_at >= since)
        .order_by(AuditLog.performed_at.desc())
    )
    activities = activities_result.scalars().all()

    activity_stats: Dict[str, int] = defaultdict(int)
    daily_stats: Dict[str, Dict[str, int]] = defaultdict(_empty_day)
    for activity in activities:
        activity_stats[activity.action_type.value] += 1
        day = daily_stats[iso_day(activity.performed_at)]
        if activity.action_type == AuditActionType.PROFILE_VIEW:
            day["profile_views"] += 1
        elif activity.action_category == AuditCategory.REFERENCE:
            day["reference_activities"] += 1
        elif activity.action_category == AuditCategory.PRIVACY:
            day["privacy_changes"] += 1
        elif activity.action_category == AuditCategory.DATA:
            day["data_access"] += 1
        day["total_activities"] += 1

    return {
        "profile_views": [serialize_profile_view(v) for v in profile_views],
        "activity_stats": dict(activity_stats),
        "daily_stats": dict(daily_stats),
        "total_profile_views": len(profile_views),
        "total_activities": len(activities),
    }


def serialize_profile_view(view: ProfileView) -> Dict[str, Any]:
    return {
        "id": str(view.id),
        "viewer_type": view.viewer_type.value,
        "viewer_company": view.viewer_company,
        "viewed_at": ensure_utc(view.viewed_at).isoformat(),
    }
