from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Text,
    JSON,
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


# ============ Privacy Enums ============ #
class PrivacySettingType(str, PyEnum):
    """Kinds of privacy settings a user can hold."""

    PROFILE_VISIBILITY = "profile_visibility"
    REFERENCE_VISIBILITY = "reference_visibility"
    WORK_HISTORY_VISIBILITY = "work_history_visibility"
    CONTACT_INFO_SHARING = "contact_info_sharing"
    DATA_RETENTION_PERIOD = "data_retention_period"
    ANONYMIZATION_LEVEL = "anonymization_level"
    THIRD_PARTY_SHARING = "third_party_sharing"
    EXPORT_PERMISSIONS = "export_permissions"
    NOTIFICATION_PREFERENCES = "notification_preferences"
    CONSENT_TRACKING = "consent_tracking"


class ViewerType(str, PyEnum):
    """Who looked at a candidate profile."""

    EMPLOYER = "employer"
    RECRUITER = "recruiter"
    ANONYMOUS = "anonymous"
    CANDIDATE = "candidate"


class DataExportType(str, PyEnum):
    PROFILE_DATA = "profile_data"
    AUDIT_LOG = "audit_log"
    REFERENCES = "references"
    APPLICATIONS = "applications"
    COMPLETE_DATA = "complete_data"


class DataExportFormat(str, PyEnum):
    JSON = "json"
    CSV = "csv"
    PDF = "pdf"


class DataExportStatus(str, PyEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ==================== Models ===================== #
class PrivacySetting(Base):
    """
    Append-only history of privacy settings. Only one row per
    (user, setting_type) is active at a time.
    """

    __tablename__ = "privacy_settings"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    setting_type: Mapped[PrivacySettingType] = mapped_column(
        SQLEnum(PrivacySettingType, native_enum=False, length=50),
        nullable=False,
        index=True,
    )
    setting_value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    effective_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    effective_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    __table_args__ = (
        Index("idx_privacy_user_type_active", "user_id", "setting_type", "is_active"),
    )


class ProfileView(Base):
    """One row per recorded (viewer, candidate) profile view."""

    __tablename__ = "profile_views"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    viewer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )  # null for anonymous views
    viewer_type: Mapped[ViewerType] = mapped_column(
        SQLEnum(ViewerType, native_enum=False, length=50), nullable=False
    )
    viewer_email: Mapped[str | None] = mapped_column(String(255))
    viewer_company: Mapped[str | None] = mapped_column(String(255))
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )

    __table_args__ = (
        Index("idx_profile_view_candidate_time", "candidate_id", "viewed_at"),
    )


class DataExport(Base):
    """A user's request to export their own data."""

    __tablename__ = "data_exports"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    export_type: Mapped[DataExportType] = mapped_column(
        SQLEnum(DataExportType, native_enum=False, length=50), nullable=False
    )
    export_format: Mapped[DataExportFormat] = mapped_column(
        SQLEnum(DataExportFormat, native_enum=False, length=20),
        nullable=False,
        default=DataExportFormat.JSON,
    )
    status: Mapped[DataExportStatus] = mapped_column(
        SQLEnum(DataExportStatus, native_enum=False, length=20),
        nullable=False,
        default=DataExportStatus.PENDING,
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
