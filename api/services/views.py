"""Profile-view recording with cooldown deduplication."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.services.audit import AuditTrail, serialize_profile_view
from core.dedup import Deduplicator, profile_view_key, view_notification_key
from core.side_effects import fire_and_log
from database.engine import AsyncSessionLocal
from database.models.audit import AuditActionType, AuditCategory, TargetResourceType
from database.models.notifications import Notification, NotificationType
from database.models.privacy import ProfileView, ViewerType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewContext:
    """Who viewed a profile and from where."""

    viewer_id: Optional[uuid.UUID]
    viewer_type: ViewerType
    viewer_email: Optional[str] = None
    viewer_company: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class ViewOutcome:
    """What the recorder did for one view."""

    deduplicated: bool = False
    recorded: bool = False
    audited: bool = False
    notified: bool = False


def view_notification_message(context: ViewContext) -> str:
    if context.viewer_company:
        return f"Someone from {context.viewer_company} viewed your profile"
    if context.viewer_type == ViewerType.RECRUITER:
        return "A recruiter viewed your profile"
    if context.viewer_type == ViewerType.EMPLOYER:
        return "An employer viewed your profile"
    return "Someone viewed your profile"


class ViewRecorder:
    """
    Records non-owner views of candidate profiles.

    A view repeated within the cooldown window is a no-op. Otherwise the
    view row, the audit entry and the candidate notification are written
    independently; none of their failures reach the caller.
    """

    def __init__(
        self,
        audit: AuditTrail,
        deduplicator: Deduplicator,
        cooldown: timedelta,
        session_factory: async_sessionmaker = AsyncSessionLocal,
    ):
        self.audit = audit
        self.deduplicator = deduplicator
        self.cooldown = cooldown
        self.session_factory = session_factory

    async def record_view(self, candidate_id: uuid.UUID, context: ViewContext) -> ViewOutcome:
        """
        Record a profile view. Never raises.

        Args:
            candidate_id: Viewed candidate
            context: Viewer details

        Returns:
            ViewOutcome describing which side effects ran
        """
        outcome = ViewOutcome()
        if context.viewer_id == candidate_id:
            return outcome

        check = await fire_and_log(
            "profile_view_dedup",
            lambda: self._seen(profile_view_key(candidate_id, context.viewer_id)),
            candidate_id=candidate_id,
        )
        if not check.ok or check.result:
            outcome.deduplicated = bool(check.result)
            return outcome

        stored = await fire_and_log(
            "profile_view",
            lambda: self._store_view(candidate_id, context),
            candidate_id=candidate_id,
        )
        outcome.recorded = stored.ok

        audited = await self.audit.record(
            action_type=AuditActionType.PROFILE_VIEW,
            category=AuditCategory.PROFILE,
            description=f"Profile viewed by {context.viewer_type.value}",
            user_id=context.viewer_id,
            target_user_id=candidate_id,
            target_resource_id=candidate_id,
            target_resource_type=TargetResourceType.PROFILE,
            details={
                "viewer_type": context.viewer_type.value,
                "viewer_email": context.viewer_email,
                "viewer_company": context.viewer_company,
            },
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        outcome.audited = audited.ok

        notified = await fire_and_log(
            "profile_view_notification",
            lambda: self._notify(candidate_id, context),
            candidate_id=candidate_id,
        )
        outcome.notified = bool(notified.ok and notified.result)
        return outcome

    async def _seen(self, key) -> bool:
        async with self.session_factory() as session:
            return await self.deduplicator.seen_within(session, key, self.cooldown)

    async def _store_view(self, candidate_id: uuid.UUID, context: ViewContext) -> ProfileView:
        view = ProfileView(
            candidate_id=candidate_id,
            viewer_id=context.viewer_id,
            viewer_type=context.viewer_type,
            viewer_email=context.viewer_email,
            viewer_company=context.viewer_company,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        async with self.session_factory() as session:
            session.add(view)
            await session.commit()
        return view

    async def _notify(self, candidate_id: uuid.UUID, context: ViewContext) -> bool:
        key = view_notification_key(candidate_id, context.viewer_type.value)
        async with self.session_factory() as session:
            if await self.deduplicator.seen_within(session, key, self.cooldown):
                return False
            session.add(
                Notification(
                    user_id=candidate_id,
                    type=NotificationType.PROFILE_VIEW,
                    title="Profile viewed",
                    message=view_notification_message(context),
                    data={
                        "viewer_type": context.viewer_type.value,
                        "viewer_company": context.viewer_company,
                    },
                )
            )
            await session.commit()
        return True


async def count_profile_views(db: AsyncSession, candidate_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(ProfileView)
        .where(ProfileView.candidate_id == candidate_id)
    )
    return result.scalar() or 0


async def list_profile_views(
    db: AsyncSession, candidate_id: uuid.UUID, limit: int = 50, offset: int = 0
) -> Dict[str, Any]:
    """List views of a candidate's profile, newest first."""
    result = await db.execute(
        select(ProfileView)
        .where(ProfileView.candidate_id == candidate_id)
        .order_by(ProfileView.viewed_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return {
        "views": [serialize_profile_view(v) for v in result.scalars().all()],
        "total": await count_profile_views(db, candidate_id),
        "limit": limit,
        "offset": offset,
    }
