"""Candidate search and profile service functions."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import uuid

from sqlalchemy import select, func, or_, cast, String
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.schemas.privacy import CandidateSearchParams
from api.services.views import ViewContext, ViewRecorder, count_profile_views
from core.middleware.authorization import (
    AuthorizationDenied,
    NotFound,
    SubscriptionRequired,
    is_usable_membership,
)
from core.privacy import PrivacyFilter, apply_privacy, is_visible
from core.subscriptions import SubscriptionGate
from database.models.employers import EmployerProfile, TeamMember
from database.models.privacy import PrivacySetting, PrivacySettingType, ViewerType
from database.models.users import CandidateProfile, User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class ViewerIdentity:
    viewer_type: ViewerType
    company_name: Optional[str] = None


def build_profile(user: User) -> Dict[str, Any]:
    """Build the unfiltered outbound representation of a candidate."""
    profile: Optional[CandidateProfile] = user.candidate_profile
    return {
        "id": str(user.id),
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "phone": user.phone,
        "bio": profile.bio if profile else None,
        "skills": list(profile.skills or []) if profile else [],
        "location": profile.location if profile else None,
        "current_title": profile.current_title if profile else None,
        "current_company": profile.current_company if profile else None,
        "industry": profile.industry if profile else None,
        "experience_years": profile.experience_years if profile else None,
        "availability": profile.availability if profile else None,
        "references": list(profile.references or []) if profile else [],
    }


async def resolve_viewer(db: AsyncSession, viewer: User) -> ViewerIdentity:
    """
    Work out who is looking at candidates.

    Raises:
        AuthorizationDenied: If the viewer has no standing to browse candidates
    """
    if viewer.role == UserRole.SUPER_ADMIN:
        return ViewerIdentity(ViewerType.ANONYMOUS)

    if viewer.role == UserRole.EMPLOYER:
        result = await db.execute(
            select(EmployerProfile.company_name).where(EmployerProfile.user_id == viewer.id)
        )
        company_name = result.scalars().first()
        if company_name is None:
            raise AuthorizationDenied()
        return ViewerIdentity(ViewerType.EMPLOYER, company_name)

    if viewer.role == UserRole.TEAM_MEMBER:
        result = await db.execute(
            select(TeamMember, EmployerProfile.company_name)
            .join(EmployerProfile, EmployerProfile.id == TeamMember.employer_profile_id)
            .where(TeamMember.user_id == viewer.id, TeamMember.is_active.is_(True))
        )
        for member, company_name in result.all():
            if is_usable_membership(member):
                return ViewerIdentity(ViewerType.RECRUITER, company_name)
        raise AuthorizationDenied()

    raise AuthorizationDenied()


async def _hidden_candidate_ids(db: AsyncSession) -> List[uuid.UUID]:
    result = await db.execute(
        select(PrivacySetting.user_id, PrivacySetting.setting_value).where(
            PrivacySetting.setting_type == PrivacySettingType.PROFILE_VISIBILITY,
            PrivacySetting.is_active.is_(True),
        )
    )
    return [
        user_id
        for user_id, value in result.all()
        if not isinstance(value, dict) or value.get("public") is not True
    ]


async def search_candidates(
    db: AsyncSession,
    privacy_filter: PrivacyFilter,
    viewer: User,
    params: CandidateSearchParams,
) -> Dict[str, Any]:
    """
    Search active candidates.

    Candidates who hid their profile are excluded before pagination. Each
    row is privacy-filtered; references are left out of listings.

    Raises:
        AuthorizationDenied: If the viewer cannot browse candidates
    """
    await resolve_viewer(db, viewer)

    query = (
        select(User)
        .join(CandidateProfile, CandidateProfile.user_id == User.id)
        .where(
            User.role == UserRole.CANDIDATE,
            User.is_active.is_(True),
            CandidateProfile.is_active.is_(True),
        )
    )

    hidden = await _hidden_candidate_ids(db)
    if hidden:
        query = query.where(User.id.notin_(hidden))

    if params.search:
        term = f"%{params.search}%"
        query = query.where(
            or_(
                User.first_name.ilike(term),
                User.last_name.ilike(term),
                CandidateProfile.current_title.ilike(term),
                CandidateProfile.bio.ilike(term),
            )
        )
    if params.location:
        query = query.where(CandidateProfile.location.ilike(f"%{params.location}%"))
    for skill in params.skills:
        query = query.where(cast(CandidateProfile.skills, String).ilike(f"%{skill}%"))
    if params.min_experience is not None:
        query = query.where(CandidateProfile.experience_years >= params.min_experience)

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    result = await db.execute(
        query.options(selectinload(User.candidate_profile))
        .order_by(CandidateProfile.updated_at.desc(), User.id)
        .limit(params.page_size)
        .offset(params.offset)
    )
    users = result.scalars().all()

    preferences = await privacy_filter.load_preferences_many(db, [u.id for u in users])
    candidates = []
    for user in users:
        listing = build_profile(user)
        listing.pop("references")
        candidates.append(
            apply_privacy(
                listing,
                preferences[user.id],
                is_owner=user.id == viewer.id,
                include_references=False,
            )
        )

    return {
        "candidates": candidates,
        "total": total,
        "page": params.page,
        "page_size": params.page_size,
        "total_pages": params.total_pages(total),
    }


async def get_candidate_profile(
    db: AsyncSession,
    privacy_filter: PrivacyFilter,
    subscription_gate: SubscriptionGate,
    recorder: ViewRecorder,
    viewer: User,
    candidate_id: uuid.UUID,
    meta: RequestMeta = RequestMeta(),
) -> Dict[str, Any]:
    """
    Get a candidate's full profile as the viewer may see it.

    Non-owners go through the full privacy filter and their view is
    recorded; the recorder never fails the request. Employers need an active
    subscription to open full profiles.

    Raises:
        AuthorizationDenied: If the viewer cannot view candidate profiles
        SubscriptionRequired: If an employer has no active subscription
        NotFound: If the candidate is absent or hides their profile
    """
    is_owner = viewer.id == candidate_id
    identity = None
    if not is_owner:
        identity = await resolve_viewer(db, viewer)
        if viewer.role == UserRole.EMPLOYER:
            if not await subscription_gate.has_gated_access(db, viewer.id):
                raise SubscriptionRequired()

    result = await db.execute(
        select(User)
        .options(selectinload(User.candidate_profile))
        .where(
            User.id == candidate_id,
            User.role == UserRole.CANDIDATE,
            User.is_active.is_(True),
        )
    )
    candidate = result.scalar_one_or_none()
    if candidate is None:
        raise NotFound("Candidate not found")

    preferences = await privacy_filter.load_preferences(db, candidate_id)
    if not is_visible(preferences, is_owner):
        raise NotFound("Candidate not found")

    profile = apply_privacy(build_profile(candidate), preferences, is_owner=is_owner)
    profile["profile_views"] = await count_profile_views(db, candidate_id)

    if identity is not None:
        await recorder.record_view(
            candidate_id,
            ViewContext(
                viewer_id=viewer.id,
                viewer_type=identity.viewer_type,
                viewer_email=viewer.email,
                viewer_company=identity.company_name,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
            ),
        )

    return profile
