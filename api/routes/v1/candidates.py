"""
Candidate search and profile endpoints.

Every profile leaving these endpoints has passed through the candidate's
privacy settings.
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_request_meta, get_services, require_active_user
from api.schemas.common import ERROR_RESPONSES
from api.schemas.privacy import CandidateSearchParams
from api.services import Services
from api.services import candidates as candidate_service
from api.services.candidates import RequestMeta
from database.engine import get_db
from database.models.users import User

router = APIRouter(prefix="/candidates", tags=["candidates"], responses=ERROR_RESPONSES)


@router.get(
    "",
    summary="Search Candidates",
    description="Search candidates who made their profile public. Results are privacy-filtered.",
)
async def search_candidates(
    search: Optional[str] = Query(None, max_length=200, description="Name, title or bio"),
    location: Optional[str] = Query(None, max_length=200, description="Location contains"),
    skills: list[str] = Query([], description="Required skills"),
    min_experience: Optional[int] = Query(None, ge=0, description="Minimum years"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    params = CandidateSearchParams(
        search=search,
        location=location,
        skills=skills,
        min_experience=min_experience,
        page=page,
        page_size=page_size,
    )
    return await candidate_service.search_candidates(
        db, services.privacy_filter, current_user, params
    )


@router.get(
    "/{candidate_id}",
    summary="Get Candidate Profile",
    description=(
        "Get a candidate's full profile as the caller may see it. Views by "
        "others are recorded and the candidate is notified."
    ),
)
async def get_candidate_profile(
    candidate_id: uuid.UUID = Path(..., description="Candidate user ID"),
    current_user: User = Depends(require_active_user),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await candidate_service.get_candidate_profile(
        db,
        services.privacy_filter,
        services.subscription_gate,
        services.view_recorder,
        current_user,
        candidate_id,
        meta,
    )
