"""
Subscription gating.

Billing status is synced into the subscriptions table by the billing
provider; the gate only reads that local copy.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.subscriptions import Subscription, GATED_ACCESS_STATUSES

logger = logging.getLogger(__name__)


class SubscriptionGate:
    """Answers whether a user's account currently unlocks gated capabilities."""

    def __init__(self, statuses=GATED_ACCESS_STATUSES):
        self.statuses = frozenset(statuses)

    async def has_gated_access(self, db: AsyncSession, user_id: uuid.UUID) -> bool:
        """
        Check for a subscription in an access-granting status.

        Args:
            db: Database session
            user_id: Account owner

        Returns:
            True if any subscription of the user is active, trialing or past due
        """
        result = await db.execute(
            select(Subscription.id)
            .where(
                Subscription.user_id == user_id,
                Subscription.status.in_(list(self.statuses)),
            )
            .limit(1)
        )
        allowed = result.scalar_one_or_none() is not None
        if not allowed:
            logger.info(f"User {user_id} has no subscription granting gated access")
        return allowed
