from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    JSON,
    Text,
    Uuid,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
import uuid


# ============ Audit Enums ============ #
class AuditActionType(str, PyEnum):
    """Audit action types."""

    PROFILE_VIEW = "profile_view"
    PROFILE_EDIT = "profile_edit"
    REFERENCE_SUBMISSION = "reference_submission"
    REFERENCE_VISIBILITY_CHANGE = "reference_visibility_change"
    DATA_ACCESS = "data_access"
    DATA_EXPORT = "data_export"
    PRIVACY_SETTING_CHANGE = "privacy_setting_change"
    CONSENT_GIVEN = "consent_given"
    CONSENT_WITHDRAWN = "consent_withdrawn"
    APPLICATION_SUBMISSION = "application_submission"
    APPLICATION_STATUS_CHANGE = "application_status_change"
    APPLICATION_DELETION = "application_deletion"
    TEAM_MEMBER_INVITED = "team_member_invited"
    TEAM_MEMBER_REMOVED = "team_member_removed"


class AuditCategory(str, PyEnum):
    """Audit action categories."""

    PROFILE = "profile"
    REFERENCE = "reference"
    PRIVACY = "privacy"
    APPLICATION = "application"
    VERIFICATION = "verification"
    DATA = "data"
    TEAM = "team"


class TargetResourceType(str, PyEnum):
    """Kinds of resources an audit entry can point at."""

    REFERENCE = "reference"
    APPLICATION = "application"
    PROFILE = "profile"
    WORK_HISTORY = "work_history"
    DOCUMENT = "document"
    EXPORT = "export"
    TEAM_MEMBER = "team_member"


# ==================== Models ===================== #
class AuditLog(Base):
    """
    Append-only trail of sensitive actions. Rows are never updated.
    """

    __tablename__ = "audit_logs"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Actor
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )

    # Action
    action_type: Mapped[AuditActionType] = mapped_column(
        SQLEnum(AuditActionType, native_enum=False, length=50),
        nullable=False,
        index=True,
    )
    action_category: Mapped[AuditCategory] = mapped_column(
        SQLEnum(AuditCategory, native_enum=False, length=50),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Target
    target_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    target_resource_id: Mapped[str | None] = mapped_column(String(64))
    target_resource_type: Mapped[TargetResourceType | None] = mapped_column(
        SQLEnum(TargetResourceType, native_enum=False, length=50)
    )

    # Details; "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    # Request context
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    session_id: Mapped[str | None] = mapped_column(String(255))

    # Timestamps
    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )

    __table_args__ = (
        Index("idx_audit_user_time", "user_id", "performed_at"),
        Index("idx_audit_action_time", "action_type", "performed_at"),
    )
