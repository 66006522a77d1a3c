from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Uuid,
    Enum as SQLEnum,
)
from database.engine import Base
from core.utils.datetime import now
from enum import Enum as PyEnum
from datetime import datetime
import uuid


# ==================== Enums ===================== #
class SubscriptionStatus(str, PyEnum):
    """Subscription status options, synced from the billing provider."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    UNPAID = "unpaid"
    INACTIVE = "inactive"


# Statuses that keep gated capabilities available
GATED_ACCESS_STATUSES = frozenset(
    {
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.TRIALING,
        SubscriptionStatus.PAST_DUE,
    }
)


# ==================== Subscription Model ===================== #
class Subscription(Base):
    """Billing subscription of a user, optionally tied to a company."""

    __tablename__: str = "subscriptions"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employer_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("employer_profiles.id", ondelete="SET NULL"), nullable=True
    )
    plan: Mapped[str] = mapped_column(String(100), nullable=False, default="basic")
    status: Mapped[SubscriptionStatus] = mapped_column(
        SQLEnum(SubscriptionStatus, native_enum=False, length=50),
        nullable=False,
        default=SubscriptionStatus.INCOMPLETE,
        index=True,
    )
    provider_subscription_id: Mapped[str | None] = mapped_column(
        String(255), unique=True
    )  # e.g. the Stripe subscription id

    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )
