"""
Job posting and application management endpoints.

Every endpoint is scoped to the company that owns the job and checked
against the caller's capabilities on that company.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_services, require_active_user
from api.schemas.common import ERROR_RESPONSES
from api.schemas.jobs import BulkDelete, BulkStatusUpdate, JobCreate, JobUpdate
from api.services import Services
from api.services import jobs as job_service
from core.middleware.authorization import Capability, require_capability
from database.engine import get_db
from database.models.users import User

router = APIRouter(tags=["jobs"], responses=ERROR_RESPONSES)


@router.get(
    "/companies/{employer_profile_id}/jobs",
    summary="List Company Jobs",
    description="List a company's jobs with application counts. Requires can_view_applications.",
    dependencies=[Depends(require_capability(Capability.VIEW_APPLICATIONS))],
)
async def list_company_jobs(
    employer_profile_id: uuid.UUID = Path(..., description="Company ID"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await job_service.list_company_jobs(db, employer_profile_id, limit, offset)


@router.post(
    "/companies/{employer_profile_id}/jobs",
    status_code=status.HTTP_201_CREATED,
    summary="Post Job",
    description=(
        "Post a job for a company. Requires can_post_jobs; company owners "
        "also need an active subscription."
    ),
)
async def create_job(
    payload: JobCreate,
    employer_profile_id: uuid.UUID = Path(..., description="Company ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await job_service.create_job(
        db, services.evaluator, current_user, employer_profile_id, payload
    )


@router.patch(
    "/jobs/{job_id}",
    summary="Update Job",
    description="Update a job posting. Requires can_post_jobs.",
)
async def update_job(
    changes: JobUpdate,
    job_id: uuid.UUID = Path(..., description="Job ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await job_service.update_job(db, services.evaluator, current_user, job_id, changes)


@router.delete(
    "/jobs/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Job",
    description="Delete a job and its applications. Requires can_post_jobs.",
)
async def delete_job(
    job_id: uuid.UUID = Path(..., description="Job ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    await job_service.delete_job(db, services.evaluator, current_user, job_id)


@router.get(
    "/jobs/{job_id}/applications",
    summary="List Applications",
    description=(
        "List applications to a job. Requires can_view_applications; company "
        "owners also need an active subscription."
    ),
)
async def list_applications(
    job_id: uuid.UUID = Path(..., description="Job ID"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await job_service.list_applications(
        db, services.evaluator, current_user, job_id, limit, offset
    )


@router.post(
    "/applications/bulk/status",
    summary="Bulk Update Application Status",
    description="Change the status of several applications. Requires can_review_applications.",
)
async def bulk_update_status(
    payload: BulkStatusUpdate,
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await job_service.bulk_update_application_status(
        db,
        services.evaluator,
        services.audit,
        current_user,
        payload.application_ids,
        payload.status,
        payload.notes,
    )


@router.post(
    "/applications/bulk/delete",
    summary="Bulk Delete Applications",
    description="Delete several applications. Primary owner only.",
)
async def bulk_delete(
    payload: BulkDelete,
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await job_service.bulk_delete_applications(
        db, services.evaluator, services.audit, current_user, payload.application_ids
    )
