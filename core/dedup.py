"""
Cooldown-window deduplication.

Call sites describe an event by a ``DedupKey`` and ask whether a matching
event already happened within a trailing window. The window is measured from
the most recent matching event, not from a calendar bucket. The database
backend below answers with a query; the interface allows a cache backend to
replace it without touching callers.

Checks are best-effort: two concurrent requests may both see no match.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.utils.datetime import window_start
from database.models.notifications import Notification, NotificationType
from database.models.privacy import ProfileView

logger = logging.getLogger(__name__)


# Scopes understood by the database backend
PROFILE_VIEW_SCOPE = "profile_view"
VIEW_NOTIFICATION_SCOPE = "profile_view_notification"


@dataclass(frozen=True)
class DedupKey:
    """Identifies a class of events that should not repeat within a window."""

    scope: str
    parts: tuple[tuple[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def build(cls, scope: str, **parts: Any) -> "DedupKey":
        return cls(scope=scope, parts=tuple(sorted(parts.items())))

    def get(self, name: str) -> Any:
        return dict(self.parts).get(name)


def profile_view_key(candidate_id: uuid.UUID, viewer_id: Optional[uuid.UUID]) -> DedupKey:
    return DedupKey.build(PROFILE_VIEW_SCOPE, candidate_id=candidate_id, viewer_id=viewer_id)


def view_notification_key(user_id: uuid.UUID, viewer_type: str) -> DedupKey:
    return DedupKey.build(
        VIEW_NOTIFICATION_SCOPE, user_id=user_id, viewer_type=viewer_type
    )


class Deduplicator(Protocol):
    async def seen_within(
        self,
        db: AsyncSession,
        key: DedupKey,
        window: timedelta,
        reference: Optional[datetime] = None,
    ) -> bool: ...


class QueryDeduplicator:
    """Answers dedup checks by querying the rows the events produced."""

    def __init__(self, window: timedelta):
        self.window = window

    async def seen_within(
        self,
        db: AsyncSession,
        key: DedupKey,
        window: Optional[timedelta] = None,
        reference: Optional[datetime] = None,
    ) -> bool:
        """
        Check for a matching event within the trailing window.

        Args:
            db: Database session
            key: Event key
            window: Window length (defaults to the configured cooldown)
            reference: End of the window (defaults to now)

        Returns:
            True if a matching event exists in the window

        Raises:
            ValueError: If the key's scope is unknown
        """
        since = window_start(window or self.window, reference)

        if key.scope == PROFILE_VIEW_SCOPE:
            viewer_id = key.get("viewer_id")
            viewer_clause = (
                ProfileView.viewer_id.is_(None)
                if viewer_id is None
                else ProfileView.viewer_id == viewer_id
            )
            stmt = select(ProfileView.id).where(
                ProfileView.candidate_id == key.get("candidate_id"),
                viewer_clause,
                ProfileView.viewed_at >= since,
            )
        elif key.scope == VIEW_NOTIFICATION_SCOPE:
            stmt = select(Notification.id).where(
                Notification.user_id == key.get("user_id"),
                Notification.type == NotificationType.PROFILE_VIEW,
                Notification.data["viewer_type"].as_string() == key.get("viewer_type"),
                Notification.created_at >= since,
            )
        else:
            raise ValueError(f"Unknown dedup scope: {key.scope}")

        result = await db.execute(stmt.limit(1))
        seen = result.scalar_one_or_none() is not None
        if seen:
            logger.debug(f"Deduplicated {key.scope} event within {self.window}")
        return seen
