from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import User
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    JSON,
    Uuid,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
import uuid


# ==================== Enums ===================== #
class TeamMemberRole(str, PyEnum):
    """
    Roles within a company team.
    """

    PRIMARY_OWNER = "primary_owner"
    HR_MANAGER = "hr_manager"
    RECRUITER = "recruiter"
    INTERVIEWER = "interviewer"
    ADMIN = "admin"


class InvitationStatus(str, PyEnum):
    """Status of team invitations."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class EmployerProfile(Base):
    """
    Company account owned by an employer user.
    """

    __tablename__: str = "employer_profiles"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[str | None] = mapped_column(String(100))
    website: Mapped[str | None] = mapped_column(String(500))
    is_primary_owner: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    # Stored as JSON, read through CapabilitySet
    permissions: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="employer_profile")
    team_members: Mapped[list["TeamMember"]] = relationship(
        "TeamMember", back_populates="employer_profile", cascade="all, delete-orphan"
    )


class TeamMember(Base):
    """
    Company-scoped principal. Created pending with a time-boxed invitation
    token; bound to a user once the invitation is accepted.
    """

    __tablename__: str = "team_members"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employer_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("employer_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )  # null until the invitation is accepted

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20))
    department: Mapped[str | None] = mapped_column(String(100))
    job_title: Mapped[str | None] = mapped_column(String(100))

    role: Mapped[TeamMemberRole] = mapped_column(
        SQLEnum(TeamMemberRole, native_enum=False, length=50),
        nullable=False,
        default=TeamMemberRole.RECRUITER,
    )
    # Stored as JSON, read through CapabilitySet
    permissions: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Invitation lifecycle
    invited_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    invitation_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    invitation_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    invitation_status: Mapped[InvitationStatus] = mapped_column(
        SQLEnum(InvitationStatus, native_enum=False, length=50),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    # Relationships
    employer_profile: Mapped["EmployerProfile"] = relationship(
        "EmployerProfile", back_populates="team_members"
    )

    __table_args__ = (
        UniqueConstraint(
            "employer_profile_id", "email", name="uq_team_member_company_email"
        ),
        Index("idx_team_member_company", "employer_profile_id"),
        Index("idx_team_member_email", "email"),
        Index("idx_team_member_role", "role"),
    )
