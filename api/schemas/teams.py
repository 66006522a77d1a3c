"""Team management API schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from core.middleware.authorization import CapabilitySet
from database.models.employers import TeamMemberRole, InvitationStatus


def _validate_permissions(v: Optional[dict[str, bool]]) -> Optional[dict[str, bool]]:
    if v is None:
        return None
    return CapabilitySet.from_mapping(v, strict=True).to_dict()


class TeamInviteRequest(BaseModel):
    """Schema for inviting a team member."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: TeamMemberRole = TeamMemberRole.RECRUITER
    permissions: Optional[dict[str, bool]] = Field(
        None, description="Capability map; derived from the role when omitted"
    )
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=100)
    job_title: Optional[str] = Field(None, max_length=100)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("email", mode="after")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v):
        """Only known capabilities with boolean values are accepted."""
        return _validate_permissions(v)


class TeamMemberUpdate(BaseModel):
    """Schema for updating a team member. Omitted fields are unchanged."""

    role: Optional[TeamMemberRole] = None
    permissions: Optional[dict[str, bool]] = None
    phone: Optional[str] = Field(None, max_length=20)
    department: Optional[str] = Field(None, max_length=100)
    job_title: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v):
        return _validate_permissions(v)


class AcceptInvitationRequest(BaseModel):
    """Schema for accepting an invitation by setting a password."""

    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)


class TeamMemberResponse(BaseModel):
    """Team member as returned by the API. Never carries the invitation token."""

    id: str
    employer_profile_id: str
    user_id: Optional[str] = None
    email: str
    first_name: str
    last_name: str
    role: TeamMemberRole
    permissions: dict[str, bool]
    department: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    invitation_status: InvitationStatus
    invitation_expires_at: Optional[datetime] = None
    joined_at: Optional[datetime] = None
    created_at: datetime
