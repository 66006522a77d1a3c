"""Team member service functions."""

from datetime import timedelta
from typing import Any, Dict, Optional
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.teams import TeamInviteRequest, TeamMemberUpdate
from api.services.audit import AuditTrail
from core.config import settings
from core.integrations.email import EmailService, EmailTemplates
from core.middleware.authorization import (
    Capability,
    CapabilitySet,
    DEFAULT_ROLE_CAPABILITIES,
    NotFound,
    PermissionEvaluator,
    TeamMemberPrincipal,
    evaluate,
    is_usable_membership,
)
from core.security import generate_invitation_token, hash_password
from core.side_effects import fire_and_log
from core.utils.datetime import now, ensure_utc
from database.models.audit import AuditActionType, AuditCategory, TargetResourceType
from database.models.employers import (
    EmployerProfile,
    InvitationStatus,
    TeamMember,
    TeamMemberRole,
)
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)

MEMBER_NOT_FOUND = "Team member not found"


class InvitationInvalid(ValueError):
    """Raised when an invitation token is unknown, used or expired."""

    def __init__(self, message: str = "Invalid or expired invitation"):
        super().__init__(message)


def serialize_team_member(member: TeamMember) -> Dict[str, Any]:
    """Serialize a team member. The invitation token is never included."""
    return {
        "id": str(member.id),
        "employer_profile_id": str(member.employer_profile_id),
        "user_id": str(member.user_id) if member.user_id else None,
        "email": member.email,
        "first_name": member.first_name,
        "last_name": member.last_name,
        "role": member.role.value,
        "permissions": CapabilitySet.from_mapping(member.permissions).to_dict(),
        "department": member.department,
        "job_title": member.job_title,
        "phone": member.phone,
        "is_active": member.is_active,
        "invitation_status": member.invitation_status.value,
        "invitation_expires_at": ensure_utc(member.invitation_expires_at).isoformat()
        if member.invitation_expires_at
        else None,
        "joined_at": ensure_utc(member.joined_at).isoformat() if member.joined_at else None,
        "created_at": ensure_utc(member.created_at).isoformat(),
    }


async def _get_company(db: AsyncSession, employer_profile_id: uuid.UUID) -> EmployerProfile:
    company = await db.get(EmployerProfile, employer_profile_id)
    if company is None:
        raise NotFound("Company not found")
    return company


async def _get_member(db: AsyncSession, member_id: uuid.UUID) -> TeamMember:
    member = await db.get(TeamMember, member_id)
    if member is None:
        raise NotFound(MEMBER_NOT_FOUND)
    return member


async def _require_member_manager(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    member: TeamMember,
    new_role: Optional[TeamMemberRole] = None,
) -> None:
    """
    Check that ``actor`` may change ``member``.

    Primary-owner rows, the actor's own row and promotions to primary owner
    are reserved for the primary owner.
    """
    await evaluator.require(
        db,
        actor,
        member.employer_profile_id,
        Capability.MANAGE_TEAM,
        not_found=MEMBER_NOT_FOUND,
    )
    if (
        new_role == TeamMemberRole.PRIMARY_OWNER
        or member.role == TeamMemberRole.PRIMARY_OWNER
        or (member.user_id is not None and member.user_id == actor.id)
    ):
        await evaluator.require_primary_owner(db, actor, member.employer_profile_id)


async def list_team_members(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    employer_profile_id: uuid.UUID,
    include_inactive: bool = False,
) -> Dict[str, Any]:
    """List a company's team. Requires can_manage_team."""
    await evaluator.require(db, actor, employer_profile_id, Capability.MANAGE_TEAM)

    query = select(TeamMember).where(TeamMember.employer_profile_id == employer_profile_id)
    if not include_inactive:
        query = query.where(TeamMember.is_active.is_(True))
    result = await db.execute(query.order_by(TeamMember.created_at.desc()))
    members = result.scalars().all()
    return {
        "team_members": [serialize_team_member(m) for m in members],
        "total": len(members),
    }


async def invite_team_member(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    audit: AuditTrail,
    email_service: EmailService,
    actor: User,
    employer_profile_id: uuid.UUID,
    payload: TeamInviteRequest,
) -> Dict[str, Any]:
    """
    Invite a member to a company's team.

    The invitation row is committed before the email is sent; a failed email
    does not undo the invitation.

    Args:
        db: Database session
        evaluator: Permission evaluator
        audit: Audit trail
        email_service: Email sender
        actor: Inviting user (needs can_manage_team)
        employer_profile_id: Company to invite into
        payload: Invitation details

    Returns:
        Serialized team member and whether the email was sent

    Raises:
        AuthorizationDenied: If the actor cannot manage the team, or invites
            a primary owner without being one
        ValueError: If the email is already on the team
    """
    await evaluator.require(db, actor, employer_profile_id, Capability.MANAGE_TEAM)
    if payload.role == TeamMemberRole.PRIMARY_OWNER:
        await evaluator.require_primary_owner(db, actor, employer_profile_id)
    company = await _get_company(db, employer_profile_id)

    existing = await db.execute(
        select(func.count())
        .select_from(TeamMember)
        .where(
            TeamMember.employer_profile_id == employer_profile_id,
            TeamMember.email == payload.email,
        )
    )
    if existing.scalar():
        raise ValueError("A team member with this email already exists")

    if payload.permissions is not None:
        capabilities = CapabilitySet.from_mapping(payload.permissions, strict=True)
    else:
        capabilities = DEFAULT_ROLE_CAPABILITIES[payload.role]

    token = generate_invitation_token()
    invited_at = now()
    member = TeamMember(
        employer_profile_id=employer_profile_id,
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        department=payload.department,
        job_title=payload.job_title,
        role=payload.role,
        permissions=capabilities.to_dict(),
        invited_by=actor.id,
        invitation_token=token,
        invitation_expires_at=invited_at + timedelta(days=settings.invitation_ttl_days),
        invitation_status=InvitationStatus.PENDING,
        invited_at=invited_at,
    )
    db.add(member)
    await db.commit()
    await db.refresh(member)
    logger.info(f"User {actor.id} invited team member {member.id} to company {company.id}")

    template = EmailTemplates.team_invitation(
        first_name=member.first_name,
        company_name=company.company_name,
        role=member.role.value,
        invitation_url=f"{settings.frontend_url}/team/accept-invitation?token={token}",
        ttl_days=settings.invitation_ttl_days,
    )
    sent = await fire_and_log(
        "team_invitation_email",
        lambda: email_service.send_email(
            to=member.email,
            subject=template["subject"],
            text=template["text"],
            html=template["html"],
        ),
        team_member_id=member.id,
    )
    email_sent = bool(sent.ok and sent.result.success)

    await audit.record(
        action_type=AuditActionType.TEAM_MEMBER_INVITED,
        category=AuditCategory.TEAM,
        description=f"Invited {member.email} as {member.role.value}",
        user_id=actor.id,
        target_resource_id=member.id,
        target_resource_type=TargetResourceType.TEAM_MEMBER,
        details={"employer_profile_id": str(employer_profile_id), "role": member.role.value},
    )

    return {"team_member": serialize_team_member(member), "email_sent": email_sent}


async def _find_open_invitation(db: AsyncSession, token: str) -> TeamMember:
    if not token:
        raise InvitationInvalid()
    result = await db.execute(
        select(TeamMember).where(
            TeamMember.invitation_token == token,
            TeamMember.invitation_status == InvitationStatus.PENDING,
        )
    )
    member = result.scalar_one_or_none()
    if member is None or not is_usable_membership(member):
        raise InvitationInvalid()
    return member


async def verify_invitation(db: AsyncSession, token: str) -> Dict[str, Any]:
    """
    Check an invitation token without consuming it.

    Raises:
        InvitationInvalid: If the token is unknown, used or expired
    """
    member = await _find_open_invitation(db, token)
    company = await _get_company(db, member.employer_profile_id)
    return {
        "email": member.email,
        "first_name": member.first_name,
        "last_name": member.last_name,
        "role": member.role.value,
        "company_name": company.company_name,
        "expires_at": ensure_utc(member.invitation_expires_at).isoformat(),
    }


async def accept_invitation(db: AsyncSession, token: str, password: str) -> User:
    """
    Accept an invitation by setting a password.

    Creates the member's user account, binds it to the team member row and
    clears the token so it cannot be reused.

    Returns:
        The created user

    Raises:
        InvitationInvalid: If the token is unknown, used or expired
        ValueError: If an account already exists for the invited email
    """
    member = await _find_open_invitation(db, token)

    existing = await db.execute(select(User.id).where(User.email == member.email))
    if existing.scalar_one_or_none() is not None:
        raise ValueError("An account with this email already exists")

    user = User(
        email=member.email,
        password_hash=hash_password(password),
        role=UserRole.TEAM_MEMBER,
        first_name=member.first_name,
        last_name=member.last_name,
        phone=member.phone,
        is_active=True,
        is_verified=True,
    )
    db.add(user)
    await db.flush()

    joined_at = now()
    member.user_id = user.id
    member.invitation_status = InvitationStatus.ACCEPTED
    member.joined_at = joined_at
    member.last_active_at = joined_at
    member.invitation_token = None
    member.invitation_expires_at = None
    await db.commit()
    await db.refresh(user)

    logger.info(f"Team member {member.id} accepted invitation as user {user.id}")
    return user


async def update_team_member(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    member_id: uuid.UUID,
    changes: TeamMemberUpdate,
) -> Dict[str, Any]:
    """Update a member's role, capabilities or details. Requires can_manage_team."""
    member = await _get_member(db, member_id)
    await _require_member_manager(db, evaluator, actor, member, changes.role)

    updates = changes.model_dump(exclude_unset=True)
    if "permissions" in updates and updates["permissions"] is not None:
        updates["permissions"] = CapabilitySet.from_mapping(
            updates["permissions"], strict=True
        ).to_dict()
    for field, value in updates.items():
        if value is None and field in ("role", "permissions", "is_active"):
            continue
        setattr(member, field, value)

    await db.commit()
    await db.refresh(member)
    logger.info(f"User {actor.id} updated team member {member.id}")
    return serialize_team_member(member)


async def deactivate_team_member(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    member_id: uuid.UUID,
) -> Dict[str, Any]:
    """Deactivate a member without deleting it. Requires can_manage_team."""
    member = await _get_member(db, member_id)
    await _require_member_manager(db, evaluator, actor, member)
    member.is_active = False
    await db.commit()
    await db.refresh(member)
    logger.info(f"User {actor.id} deactivated team member {member.id}")
    return serialize_team_member(member)


async def remove_team_member(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    audit: AuditTrail,
    actor: User,
    member_id: uuid.UUID,
) -> None:
    """
    Remove a member from the team. Requires can_manage_team.

    The linked user account is deactivated, not deleted.
    """
    member = await _get_member(db, member_id)
    await _require_member_manager(db, evaluator, actor, member)

    linked_user_id = member.user_id
    employer_profile_id = member.employer_profile_id
    if linked_user_id is not None:
        user = await db.get(User, linked_user_id)
        if user is not None:
            user.is_active = False

    await db.delete(member)
    await db.commit()
    logger.info(f"User {actor.id} removed team member {member_id}")

    await audit.record(
        action_type=AuditActionType.TEAM_MEMBER_REMOVED,
        category=AuditCategory.TEAM,
        description=f"Removed team member {member_id}",
        user_id=actor.id,
        target_user_id=linked_user_id,
        target_resource_id=member_id,
        target_resource_type=TargetResourceType.TEAM_MEMBER,
        details={"employer_profile_id": str(employer_profile_id)},
    )


async def get_team_member_profile(db: AsyncSession, user: User) -> Dict[str, Any]:
    """
    Get the acting team member's own memberships and effective capabilities.

    Raises:
        NotFound: If the user has no usable membership
    """
    result = await db.execute(
        select(TeamMember, EmployerProfile.company_name)
        .join(EmployerProfile, EmployerProfile.id == TeamMember.employer_profile_id)
        .where(TeamMember.user_id == user.id, TeamMember.is_active.is_(True))
    )
    memberships = []
    for member, company_name in result.all():
        if not is_usable_membership(member):
            continue
        principal = TeamMemberPrincipal(
            team_member_id=member.id,
            employer_profile_id=member.employer_profile_id,
            role=member.role,
            capabilities=CapabilitySet.from_mapping(member.permissions),
        )
        principal_caps = {c.value: evaluate(principal, c) for c in Capability}
        memberships.append(
            {
                **serialize_team_member(member),
                "company_name": company_name,
                "effective_permissions": principal_caps,
            }
        )
    if not memberships:
        raise NotFound("Team member profile not found")
    return {"memberships": memberships}
