"""
Authorization for company-scoped actions.

This module implements:
1. Closed capability set stored on employer profiles and team members
2. Role resolution of the acting user against the target company
3. Permission evaluation, including the primary-owner gate
4. Subscription gating signalled separately from plain denials
5. FastAPI dependency factories for route-level checks
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.subscriptions import SubscriptionGate
from core.utils.datetime import now, ensure_utc
from database.engine import get_db
from database.models.employers import (
    EmployerProfile,
    InvitationStatus,
    TeamMember,
    TeamMemberRole,
)
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """Company-scoped capabilities."""

    POST_JOBS = "can_post_jobs"
    VIEW_APPLICATIONS = "can_view_applications"
    INTERVIEW_CANDIDATES = "can_interview_candidates"
    MANAGE_TEAM = "can_manage_team"
    ACCESS_ANALYTICS = "can_access_analytics"
    MANAGE_COMPANY_PROFILE = "can_manage_company_profile"
    REVIEW_APPLICATIONS = "can_review_applications"
    SEND_EMAILS = "can_send_emails"
    EXPORT_DATA = "can_export_data"


@dataclass(frozen=True)
class CapabilitySet:
    """
    Typed view over a stored permissions map.

    Only members of ``Capability`` can be granted or queried; looking up an
    unknown name raises instead of silently evaluating to False.
    """

    granted: frozenset[Capability] = field(default_factory=frozenset)

    @classmethod
    def of(cls, *capabilities: Capability) -> "CapabilitySet":
        return cls(frozenset(Capability(c) for c in capabilities))

    @classmethod
    def all(cls) -> "CapabilitySet":
        return cls(frozenset(Capability))

    @classmethod
    def from_mapping(
        cls, data: Optional[Mapping[str, Any]], strict: bool = False
    ) -> "CapabilitySet":
        """
        Build a capability set from a ``{name: bool}`` map.

        Args:
            data: Stored or submitted permissions map
            strict: Raise on unknown names instead of dropping them

        Returns:
            CapabilitySet holding every name mapped to ``True``

        Raises:
            ValueError: If ``strict`` and a name is not a known capability,
                or a value is not a boolean
        """
        granted = set()
        for name, value in (data or {}).items():
            try:
                capability = Capability(name)
            except ValueError:
                if strict:
                    raise ValueError(f"Unknown capability: {name}")
                logger.warning(f"Ignoring unknown capability in stored permissions: {name}")
                continue
            if strict and not isinstance(value, bool):
                raise ValueError(f"Capability {name} must be a boolean")
            if value is True:
                granted.add(capability)
        return cls(frozenset(granted))

    def allows(self, capability: Capability) -> bool:
        return Capability(capability) in self.granted

    def to_dict(self) -> dict[str, bool]:
        return {c.value: c in self.granted for c in Capability}

    def __contains__(self, capability: object) -> bool:
        return capability in self.granted


# Default capabilities applied when a member is invited without explicit ones
DEFAULT_ROLE_CAPABILITIES: dict[TeamMemberRole, CapabilitySet] = {
    TeamMemberRole.PRIMARY_OWNER: CapabilitySet.all(),
    TeamMemberRole.ADMIN: CapabilitySet.of(
        Capability.POST_JOBS,
        Capability.VIEW_APPLICATIONS,
        Capability.INTERVIEW_CANDIDATES,
        Capability.MANAGE_TEAM,
        Capability.ACCESS_ANALYTICS,
        Capability.MANAGE_COMPANY_PROFILE,
        Capability.REVIEW_APPLICATIONS,
        Capability.SEND_EMAILS,
    ),
    TeamMemberRole.HR_MANAGER: CapabilitySet.of(
        Capability.POST_JOBS,
        Capability.VIEW_APPLICATIONS,
        Capability.INTERVIEW_CANDIDATES,
        Capability.ACCESS_ANALYTICS,
        Capability.REVIEW_APPLICATIONS,
        Capability.SEND_EMAILS,
    ),
    TeamMemberRole.RECRUITER: CapabilitySet.of(
        Capability.POST_JOBS,
        Capability.VIEW_APPLICATIONS,
        Capability.INTERVIEW_CANDIDATES,
        Capability.REVIEW_APPLICATIONS,
    ),
    TeamMemberRole.INTERVIEWER: CapabilitySet.of(
        Capability.VIEW_APPLICATIONS,
        Capability.INTERVIEW_CANDIDATES,
    ),
}


# ==================== Errors ===================== #
class DenialReason(str, Enum):
    """Reason codes surfaced to clients on denial."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    SUBSCRIPTION_REQUIRED = "SUBSCRIPTION_REQUIRED"


class AccessError(Exception):
    """Base class for access failures that abort a request."""

    reason: DenialReason = DenialReason.FORBIDDEN
    status_code: int = 403
    default_message: str = "You do not have permission to perform this action"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthorizationDenied(AccessError):
    """Raised when the acting principal lacks the required capability."""


class SubscriptionRequired(AccessError):
    """Raised when an action needs an active subscription."""

    reason = DenialReason.SUBSCRIPTION_REQUIRED
    default_message = "An active subscription is required for this action"


class NotFound(AccessError):
    """Raised when a resource is absent or not visible to the viewer."""

    reason = DenialReason.NOT_FOUND
    status_code = 404
    default_message = "Resource not found"


# ==================== Principals ===================== #
@dataclass(frozen=True)
class NoAccess:
    """The acting user holds no role in the target company."""


@dataclass(frozen=True)
class EmployerOwner:
    """The acting user owns the target company's employer profile."""

    employer_profile_id: uuid.UUID


@dataclass(frozen=True)
class TeamMemberPrincipal:
    """The acting user is an active member of the target company's team."""

    team_member_id: uuid.UUID
    employer_profile_id: uuid.UUID
    role: TeamMemberRole
    capabilities: CapabilitySet

    @property
    def is_primary_owner(self) -> bool:
        return self.role == TeamMemberRole.PRIMARY_OWNER


Principal = Union[NoAccess, EmployerOwner, TeamMemberPrincipal]


def is_usable_membership(member: TeamMember) -> bool:
    """
    Check whether a team member row can currently act for its company.

    Inactive rows never grant access; pending rows only while the
    invitation has not expired.
    """
    if not member.is_active:
        return False
    if member.invitation_status == InvitationStatus.PENDING:
        expires_at = member.invitation_expires_at
        return expires_at is not None and ensure_utc(expires_at) > now()
    return member.invitation_status == InvitationStatus.ACCEPTED


class RoleResolver:
    """Resolves the acting principal of a user against a company."""

    async def resolve(
        self,
        db: AsyncSession,
        user: User,
        employer_profile_id: uuid.UUID,
    ) -> Principal:
        """
        Resolve the principal for ``user`` acting on ``employer_profile_id``.

        Resolution is never cached; memberships can change between calls.

        Args:
            db: Database session
            user: Acting user
            employer_profile_id: Company owning the target resource

        Returns:
            EmployerOwner, TeamMemberPrincipal or NoAccess
        """
        if user.role == UserRole.EMPLOYER:
            result = await db.execute(
                select(EmployerProfile.id).where(EmployerProfile.user_id == user.id)
            )
            owned_ids = set(result.scalars().all())
            if employer_profile_id in owned_ids:
                return EmployerOwner(employer_profile_id=employer_profile_id)
            return NoAccess()

        if user.role == UserRole.TEAM_MEMBER:
            result = await db.execute(
                select(TeamMember).where(
                    TeamMember.user_id == user.id,
                    TeamMember.employer_profile_id == employer_profile_id,
                    TeamMember.is_active.is_(True),
                )
            )
            member = result.scalars().first()
            if member is None or not is_usable_membership(member):
                return NoAccess()
            return TeamMemberPrincipal(
                team_member_id=member.id,
                employer_profile_id=member.employer_profile_id,
                role=member.role,
                capabilities=CapabilitySet.from_mapping(member.permissions),
            )

        return NoAccess()


def evaluate(principal: Principal, capability: Capability) -> bool:
    """
    Decide whether a resolved principal holds a capability.

    Company owners hold every capability for their own company. Team members
    hold a capability if they are the primary owner or it is granted to them.
    """
    capability = Capability(capability)
    if isinstance(principal, EmployerOwner):
        return True
    if isinstance(principal, TeamMemberPrincipal):
        return principal.is_primary_owner or principal.capabilities.allows(capability)
    return False


def is_primary_owner(principal: Principal) -> bool:
    """Check the stricter gate used by destructive bulk actions."""
    if isinstance(principal, EmployerOwner):
        return True
    if isinstance(principal, TeamMemberPrincipal):
        return principal.is_primary_owner
    return False


class PermissionEvaluator:
    """
    Combines role resolution and subscription gating.

    Built once at start-up and shared by every request.
    """

    def __init__(
        self,
        subscription_gate: SubscriptionGate,
        resolver: Optional[RoleResolver] = None,
    ):
        self.subscription_gate = subscription_gate
        self.resolver = resolver or RoleResolver()

    async def can_perform(
        self,
        db: AsyncSession,
        user: User,
        employer_profile_id: uuid.UUID,
        capability: Capability,
    ) -> bool:
        """Check a capability without raising."""
        principal = await self.resolver.resolve(db, user, employer_profile_id)
        return evaluate(principal, capability)

    async def require(
        self,
        db: AsyncSession,
        user: User,
        employer_profile_id: uuid.UUID,
        capability: Capability,
        owner_requires_subscription: bool = False,
        not_found: Optional[str] = None,
    ) -> Principal:
        """
        Require a capability on a company.

        Args:
            db: Database session
            user: Acting user
            employer_profile_id: Company owning the target resource
            capability: Capability the action needs
            owner_requires_subscription: Company owners must also pass the
                subscription gate. Team members act under the owner's plan.
            not_found: Message for callers with no standing on the company.
                Set when the company was found through a resource id, so a
                foreign resource reads the same as a missing one.

        Returns:
            The resolved principal

        Raises:
            NotFound: If ``not_found`` is set and the user has no standing
            AuthorizationDenied: If the principal lacks the capability
            SubscriptionRequired: If an owner has no gated access
        """
        principal = await self._resolve(db, user, employer_profile_id, not_found)
        if not evaluate(principal, capability):
            logger.warning(
                f"User {user.id} denied {Capability(capability).value} "
                f"on company {employer_profile_id}"
            )
            raise AuthorizationDenied()

        if owner_requires_subscription and isinstance(principal, EmployerOwner):
            if not await self.subscription_gate.has_gated_access(db, user.id):
                raise SubscriptionRequired()

        return principal

    async def require_all(
        self,
        db: AsyncSession,
        user: User,
        employer_profile_ids: Iterable[uuid.UUID],
        capability: Capability,
        not_found: Optional[str] = None,
    ) -> None:
        """Require a capability on every company in ``employer_profile_ids``."""
        for employer_profile_id in set(employer_profile_ids):
            await self.require(db, user, employer_profile_id, capability, not_found=not_found)

    async def require_primary_owner(
        self,
        db: AsyncSession,
        user: User,
        employer_profile_id: uuid.UUID,
        not_found: Optional[str] = None,
    ) -> Principal:
        """
        Require the company owner or a primary-owner team member.

        Capability flags are ignored here.

        Raises:
            NotFound: If ``not_found`` is set and the user has no standing
            AuthorizationDenied: If the principal is not a primary owner
        """
        principal = await self._resolve(db, user, employer_profile_id, not_found)
        if not is_primary_owner(principal):
            logger.warning(
                f"User {user.id} attempted a primary-owner action "
                f"on company {employer_profile_id}"
            )
            raise AuthorizationDenied("Only the primary owner can perform this action")
        return principal

    async def _resolve(
        self,
        db: AsyncSession,
        user: User,
        employer_profile_id: uuid.UUID,
        not_found: Optional[str],
    ) -> Principal:
        principal = await self.resolver.resolve(db, user, employer_profile_id)
        if not_found is not None and isinstance(principal, NoAccess):
            raise NotFound(not_found)
        return principal


def get_permission_evaluator(request: Request) -> PermissionEvaluator:
    """Get the evaluator built at start-up."""
    return request.app.state.permission_evaluator


def require_capability(
    capability: Capability,
    employer_profile_id_param: str = "employer_profile_id",
    owner_requires_subscription: bool = False,
) -> Callable:
    """
    Dependency to require a capability on the company named in the path.

    Args:
        capability: Required capability
        employer_profile_id_param: Path parameter holding the company id
        owner_requires_subscription: Also gate company owners on subscription

    Returns:
        FastAPI dependency resolving to the principal
    """
    from api.dependencies import require_active_user

    capability = Capability(capability)

    async def dependency(
        request: Request,
        user: User = Depends(require_active_user),
        db: AsyncSession = Depends(get_db),
        evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    ) -> Principal:
        raw_id = request.path_params.get(employer_profile_id_param)
        try:
            employer_profile_id = uuid.UUID(str(raw_id))
        except ValueError:
            raise NotFound("Company not found")
        return await evaluator.require(
            db,
            user,
            employer_profile_id,
            capability,
            owner_requires_subscription=owner_requires_subscription,
        )

    return dependency
