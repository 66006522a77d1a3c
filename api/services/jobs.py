"""Job and application service functions."""

from typing import Any, Dict, Iterable, List
import logging
import uuid

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.jobs import JobCreate, JobUpdate
from api.services.audit import AuditTrail
from core.middleware.authorization import Capability, NotFound, PermissionEvaluator
from core.utils.datetime import now, ensure_utc
from database.models.audit import AuditActionType, AuditCategory, TargetResourceType
from database.models.jobs import Job, JobApplication, ApplicationStatus
from database.models.users import User

logger = logging.getLogger(__name__)

JOB_NOT_FOUND = "Job not found"
APPLICATIONS_NOT_FOUND = "One or more applications not found"


def serialize_job(job: Job, application_count: int | None = None) -> Dict[str, Any]:
    data = {
        "id": str(job.id),
        "employer_profile_id": str(job.employer_profile_id),
        "title": job.title,
        "description": job.description,
        "location": job.location,
        "salary_min": job.salary_min,
        "salary_max": job.salary_max,
        "status": job.status.value,
        "posted_by": str(job.posted_by) if job.posted_by else None,
        "created_at": ensure_utc(job.created_at).isoformat(),
    }
    if application_count is not None:
        data["application_count"] = application_count
    return data


def serialize_application(application: JobApplication) -> Dict[str, Any]:
    return {
        "id": str(application.id),
        "job_id": str(application.job_id),
        "candidate_id": str(application.candidate_id),
        "status": application.status.value,
        "cover_letter": application.cover_letter,
        "notes": application.notes,
        "reviewed_by": str(application.reviewed_by) if application.reviewed_by else None,
        "reviewed_at": ensure_utc(application.reviewed_at).isoformat()
        if application.reviewed_at
        else None,
        "applied_at": ensure_utc(application.applied_at).isoformat(),
    }


async def _get_job(db: AsyncSession, job_id: uuid.UUID) -> Job:
    job = await db.get(Job, job_id)
    if job is None:
        raise NotFound(JOB_NOT_FOUND)
    return job


async def create_job(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    employer_profile_id: uuid.UUID,
    payload: JobCreate,
) -> Dict[str, Any]:
    """
    Post a job for a company.

    Company owners also need an active subscription; team members post
    under the owner's plan.

    Raises:
        AuthorizationDenied: If the actor lacks can_post_jobs
        SubscriptionRequired: If an owner has no active subscription
    """
    await evaluator.require(
        db,
        actor,
        employer_profile_id,
        Capability.POST_JOBS,
        owner_requires_subscription=True,
    )
    job = Job(
        employer_profile_id=employer_profile_id,
        posted_by=actor.id,
        **payload.model_dump(),
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)
    logger.info(f"User {actor.id} posted job {job.id} for company {employer_profile_id}")
    return serialize_job(job)


async def update_job(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    job_id: uuid.UUID,
    changes: JobUpdate,
) -> Dict[str, Any]:
    """Update a job. Requires can_post_jobs on the job's company."""
    job = await _get_job(db, job_id)
    await evaluator.require(
        db, actor, job.employer_profile_id, Capability.POST_JOBS, not_found=JOB_NOT_FOUND
    )

    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(job, field, value)
    if job.salary_min is not None and job.salary_max is not None:
        if job.salary_min > job.salary_max:
            raise ValueError("salary_min cannot exceed salary_max")

    await db.commit()
    await db.refresh(job)
    return serialize_job(job)


async def delete_job(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    job_id: uuid.UUID,
) -> None:
    """Delete a job and its applications. Requires can_post_jobs."""
    job = await _get_job(db, job_id)
    await evaluator.require(
        db, actor, job.employer_profile_id, Capability.POST_JOBS, not_found=JOB_NOT_FOUND
    )
    await db.delete(job)
    await db.commit()
    logger.info(f"User {actor.id} deleted job {job_id}")


async def list_applications(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    actor: User,
    job_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    List applications to a job.

    Requires can_view_applications; company owners also need an active
    subscription.
    """
    job = await _get_job(db, job_id)
    await evaluator.require(
        db,
        actor,
        job.employer_profile_id,
        Capability.VIEW_APPLICATIONS,
        owner_requires_subscription=True,
        not_found=JOB_NOT_FOUND,
    )

    count_result = await db.execute(
        select(func.count())
        .select_from(JobApplication)
        .where(JobApplication.job_id == job_id)
    )
    result = await db.execute(
        select(JobApplication)
        .where(JobApplication.job_id == job_id)
        .order_by(JobApplication.applied_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return {
        "job": serialize_job(job),
        "applications": [serialize_application(a) for a in result.scalars().all()],
        "total": count_result.scalar() or 0,
        "limit": limit,
        "offset": offset,
    }


async def _load_applications(
    db: AsyncSession, application_ids: Iterable[uuid.UUID]
) -> List[tuple[JobApplication, uuid.UUID]]:
    ids = list(dict.fromkeys(application_ids))
    result = await db.execute(
        select(JobApplication, Job.employer_profile_id)
        .join(Job, Job.id == JobApplication.job_id)
        .where(JobApplication.id.in_(ids))
    )
    rows = [(application, company_id) for application, company_id in result.all()]
    if len(rows) != len(ids):
        raise NotFound(APPLICATIONS_NOT_FOUND)
    return rows


async def bulk_update_application_status(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    audit: AuditTrail,
    actor: User,
    application_ids: List[uuid.UUID],
    status: ApplicationStatus,
    notes: str | None = None,
) -> Dict[str, Any]:
    """
    Change the status of several applications.

    Requires can_review_applications on every affected company; nothing is
    changed unless all checks pass.
    """
    rows = await _load_applications(db, application_ids)
    await evaluator.require_all(
        db,
        actor,
        {company_id for _, company_id in rows},
        Capability.REVIEW_APPLICATIONS,
        not_found=APPLICATIONS_NOT_FOUND,
    )

    reviewed_at = now()
    for application, _ in rows:
        application.status = status
        application.reviewed_by = actor.id
        application.reviewed_at = reviewed_at
        if notes is not None:
            application.notes = notes
    await db.commit()

    for application, _ in rows:
        await audit.record(
            action_type=AuditActionType.APPLICATION_STATUS_CHANGE,
            category=AuditCategory.APPLICATION,
            description=f"Application status changed to {status.value}",
            user_id=actor.id,
            target_user_id=application.candidate_id,
            target_resource_id=application.id,
            target_resource_type=TargetResourceType.APPLICATION,
            details={"status": status.value},
        )

    logger.info(f"User {actor.id} set {len(rows)} applications to {status.value}")
    return {"updated": len(rows), "status": status.value}


async def bulk_delete_applications(
    db: AsyncSession,
    evaluator: PermissionEvaluator,
    audit: AuditTrail,
    actor: User,
    application_ids: List[uuid.UUID],
) -> Dict[str, Any]:
    """
    Delete several applications. Primary owner only, on every affected company.
    """
    rows = await _load_applications(db, application_ids)
    for company_id in {company_id for _, company_id in rows}:
        await evaluator.require_primary_owner(
            db, actor, company_id, not_found=APPLICATIONS_NOT_FOUND
        )

    targets = [(application.id, application.candidate_id) for application, _ in rows]
    await db.execute(
        delete(JobApplication).where(JobApplication.id.in_([i for i, _ in targets]))
    )
    await db.commit()

    for application_id, candidate_id in targets:
        await audit.record(
            action_type=AuditActionType.APPLICATION_DELETION,
            category=AuditCategory.APPLICATION,
            description="Application deleted",
            user_id=actor.id,
            target_user_id=candidate_id,
            target_resource_id=application_id,
            target_resource_type=TargetResourceType.APPLICATION,
        )

    logger.info(f"User {actor.id} deleted {len(targets)} applications")
    return {"deleted": len(targets)}


async def list_company_jobs(
    db: AsyncSession,
    employer_profile_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    List a company's jobs with application counts.

    The caller is responsible for the capability check.
    """
    counts = (
        select(JobApplication.job_id, func.count().label("application_count"))
        .group_by(JobApplication.job_id)
        .subquery()
    )
    query = (
        select(Job, func.coalesce(counts.c.application_count, 0))
        .outerjoin(counts, counts.c.job_id == Job.id)
        .where(Job.employer_profile_id == employer_profile_id)
    )
    total_result = await db.execute(
        select(func.count())
        .select_from(Job)
        .where(Job.employer_profile_id == employer_profile_id)
    )
    result = await db.execute(
        query.order_by(Job.created_at.desc()).limit(limit).offset(offset)
    )
    return {
        "jobs": [serialize_job(job, count) for job, count in result.all()],
        "total": total_result.scalar() or 0,
        "limit": limit,
        "offset": offset,
    }
