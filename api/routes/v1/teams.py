"""
Team management endpoints.

Company-scoped team administration. Every management endpoint requires
can_manage_team on the company; invitation lookup and acceptance are public
and authenticated by the invitation token alone.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_services, require_active_user
from api.schemas.common import ERROR_RESPONSES
from api.schemas.teams import AcceptInvitationRequest, TeamInviteRequest, TeamMemberUpdate
from api.services import Services
from api.services import teams as team_service
from core.security import create_access_token
from database.engine import get_db
from database.models.users import User

router = APIRouter(tags=["teams"], responses=ERROR_RESPONSES)


@router.get(
    "/companies/{employer_profile_id}/team",
    summary="List Team Members",
    description="List a company's team members. Requires can_manage_team.",
)
async def list_team_members(
    employer_profile_id: uuid.UUID = Path(..., description="Company ID"),
    include_inactive: bool = Query(False, description="Include deactivated members"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await team_service.list_team_members(
        db, services.evaluator, current_user, employer_profile_id, include_inactive
    )


@router.post(
    "/companies/{employer_profile_id}/team/invite",
    status_code=status.HTTP_201_CREATED,
    summary="Invite Team Member",
    description="Invite someone to the company team by email. Requires can_manage_team.",
)
async def invite_team_member(
    payload: TeamInviteRequest,
    employer_profile_id: uuid.UUID = Path(..., description="Company ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await team_service.invite_team_member(
        db,
        services.evaluator,
        services.audit,
        services.email,
        current_user,
        employer_profile_id,
        payload,
    )


@router.patch(
    "/team/{member_id}",
    summary="Update Team Member",
    description="Change a member's role, capabilities or details. Requires can_manage_team.",
)
async def update_team_member(
    changes: TeamMemberUpdate,
    member_id: uuid.UUID = Path(..., description="Team member ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await team_service.update_team_member(
        db, services.evaluator, current_user, member_id, changes
    )


@router.post(
    "/team/{member_id}/deactivate",
    summary="Deactivate Team Member",
    description="Deactivate a member without removing them. Requires can_manage_team.",
)
async def deactivate_team_member(
    member_id: uuid.UUID = Path(..., description="Team member ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await team_service.deactivate_team_member(
        db, services.evaluator, current_user, member_id
    )


@router.delete(
    "/team/{member_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove Team Member",
    description="Remove a member and deactivate their account. Requires can_manage_team.",
)
async def remove_team_member(
    member_id: uuid.UUID = Path(..., description="Team member ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    await team_service.remove_team_member(
        db, services.evaluator, services.audit, current_user, member_id
    )


@router.get(
    "/team/me",
    summary="My Team Profile",
    description="Get the current team member's memberships and effective capabilities.",
)
async def get_my_team_profile(
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.get_team_member_profile(db, current_user)


@router.get(
    "/team/invitations/{token}",
    summary="Verify Invitation",
    description="Check that an invitation token is pending and unexpired.",
)
async def verify_invitation(
    token: str = Path(..., description="Invitation token"),
    db: AsyncSession = Depends(get_db),
):
    return await team_service.verify_invitation(db, token)


@router.post(
    "/team/invitations/accept",
    status_code=status.HTTP_201_CREATED,
    summary="Accept Invitation",
    description="Accept an invitation by choosing a password; returns an access token.",
)
async def accept_invitation(
    payload: AcceptInvitationRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await team_service.accept_invitation(db, payload.token, payload.password)
    return {
        "user_id": str(user.id),
        "email": user.email,
        "access_token": create_access_token(user.id, user.role.value),
        "token_type": "bearer",
    }
