"""
Tests for job posting and application management.

Tests:
- Subscription gating of company owners
- Team member capabilities
- Bulk status changes and bulk deletion
"""

import uuid

import pytest
from sqlalchemy import func, select

from api.schemas.jobs import JobCreate, JobUpdate
from api.services import jobs
from core.middleware.authorization import AuthorizationDenied, NotFound, SubscriptionRequired
from database.models.audit import AuditActionType, AuditLog
from database.models.employers import TeamMemberRole
from database.models.jobs import ApplicationStatus, Job, JobApplication
from database.models.subscriptions import SubscriptionStatus


def job_payload(**overrides) -> JobCreate:
    data = {"title": "Backend Engineer", "description": "Build APIs", "location": "Austin, TX"}
    data.update(overrides)
    return JobCreate(**data)


async def add_job(db, company, title="Backend Engineer") -> Job:
    job = Job(employer_profile_id=company.id, title=title, description="Build APIs")
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job


async def add_application(db, job, candidate) -> JobApplication:
    application = JobApplication(job_id=job.id, candidate_id=candidate.id)
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


class TestCreateJob:
    """Test posting jobs."""

    async def test_owner_with_subscription_posts(self, db, services, factory):
        owner, company = await factory.employer()
        await factory.subscription(owner)

        job = await jobs.create_job(db, services.evaluator, owner, company.id, job_payload())

        assert job["title"] == "Backend Engineer"
        assert job["posted_by"] == str(owner.id)
        assert job["status"] == "active"

    @pytest.mark.parametrize(
        "status", [None, SubscriptionStatus.CANCELED, SubscriptionStatus.UNPAID]
    )
    async def test_owner_without_subscription_is_gated(self, db, services, factory, status):
        owner, company = await factory.employer()
        if status is not None:
            await factory.subscription(owner, status=status)

        with pytest.raises(SubscriptionRequired):
            await jobs.create_job(db, services.evaluator, owner, company.id, job_payload())

    async def test_team_member_posts_without_own_subscription(self, db, services, factory):
        _, company = await factory.employer()
        recruiter, _ = await factory.team_member(company, permissions={"can_post_jobs": True})

        job = await jobs.create_job(
            db, services.evaluator, recruiter, company.id, job_payload()
        )

        assert job["employer_profile_id"] == str(company.id)

    async def test_team_member_without_capability_denied(self, db, services, factory):
        _, company = await factory.employer()
        interviewer, _ = await factory.team_member(
            company,
            role=TeamMemberRole.INTERVIEWER,
            permissions={"can_view_applications": True},
        )

        with pytest.raises(AuthorizationDenied):
            await jobs.create_job(
                db, services.evaluator, interviewer, company.id, job_payload()
            )

    async def test_other_company_owner_denied_before_subscription(
        self, db, services, factory
    ):
        _, company = await factory.employer()
        outsider, _ = await factory.employer()

        with pytest.raises(AuthorizationDenied):
            await jobs.create_job(db, services.evaluator, outsider, company.id, job_payload())

    def test_salary_range_is_validated(self):
        with pytest.raises(ValueError):
            job_payload(salary_min=100, salary_max=50)


class TestUpdateAndDeleteJob:
    """Test job changes."""

    async def test_update_job(self, db, services, factory):
        owner, company = await factory.employer()
        job = await add_job(db, company)

        updated = await jobs.update_job(
            db, services.evaluator, owner, job.id, JobUpdate(title="Staff Engineer")
        )

        assert updated["title"] == "Staff Engineer"
        assert updated["description"] == "Build APIs"

    async def test_update_rejects_inverted_salary(self, db, services, factory):
        owner, company = await factory.employer()
        job = await add_job(db, company)
        await jobs.update_job(db, services.evaluator, owner, job.id, JobUpdate(salary_max=50))

        with pytest.raises(ValueError):
            await jobs.update_job(
                db, services.evaluator, owner, job.id, JobUpdate(salary_min=100)
            )

    async def test_update_missing_job(self, db, services, factory):
        owner, _ = await factory.employer()

        with pytest.raises(NotFound):
            await jobs.update_job(db, services.evaluator, owner, uuid.uuid4(), JobUpdate())

    async def test_delete_job(self, db, services, factory):
        owner, company = await factory.employer()
        job = await add_job(db, company)
        job_id = job.id

        await jobs.delete_job(db, services.evaluator, owner, job_id)

        assert await db.get(Job, job_id) is None

    async def test_delete_requires_capability(self, db, services, factory):
        _, company = await factory.employer()
        job = await add_job(db, company)
        viewer, _ = await factory.team_member(company, permissions={"can_view_applications": True})

        with pytest.raises(AuthorizationDenied):
            await jobs.delete_job(db, services.evaluator, viewer, job.id)

    async def test_other_company_job_reads_as_missing(self, db, services, factory):
        _, company = await factory.employer()
        outsider, _ = await factory.employer()
        job = await add_job(db, company)

        with pytest.raises(NotFound) as missing:
            await jobs.update_job(db, services.evaluator, outsider, uuid.uuid4(), JobUpdate())
        with pytest.raises(NotFound) as foreign:
            await jobs.update_job(db, services.evaluator, outsider, job.id, JobUpdate())
        with pytest.raises(NotFound):
            await jobs.delete_job(db, services.evaluator, outsider, job.id)

        assert str(missing.value) == str(foreign.value)
        assert await db.get(Job, job.id) is not None


class TestListings:
    """Test job and application listings."""

    async def test_list_applications_gates_owner(self, db, services, factory):
        owner, company = await factory.employer()
        job = await add_job(db, company)

        with pytest.raises(SubscriptionRequired):
            await jobs.list_applications(db, services.evaluator, owner, job.id)

    async def test_other_company_applicants_read_as_missing(self, db, services, factory):
        _, company = await factory.employer()
        outsider, _ = await factory.employer()
        await factory.subscription(outsider)
        job = await add_job(db, company)

        with pytest.raises(NotFound):
            await jobs.list_applications(db, services.evaluator, outsider, job.id)

    async def test_list_applications(self, db, services, factory):
        owner, company = await factory.employer()
        await factory.subscription(owner)
        job = await add_job(db, company)
        await add_application(db, job, await factory.candidate())
        await add_application(db, job, await factory.candidate())

        result = await jobs.list_applications(db, services.evaluator, owner, job.id, limit=1)

        assert result["total"] == 2
        assert len(result["applications"]) == 1
        assert result["job"]["id"] == str(job.id)

    async def test_team_member_lists_without_subscription(self, db, services, factory):
        _, company = await factory.employer()
        viewer, _ = await factory.team_member(company, permissions={"can_view_applications": True})
        job = await add_job(db, company)

        result = await jobs.list_applications(db, services.evaluator, viewer, job.id)

        assert result["total"] == 0

    async def test_list_company_jobs_counts_applications(self, db, factory):
        _, company = await factory.employer()
        _, other_company = await factory.employer()
        busy = await add_job(db, company, "Busy")
        await add_job(db, company, "Quiet")
        await add_job(db, other_company, "Elsewhere")
        await add_application(db, busy, await factory.candidate())
        await add_application(db, busy, await factory.candidate())

        result = await jobs.list_company_jobs(db, company.id)

        counts = {j["title"]: j["application_count"] for j in result["jobs"]}
        assert counts == {"Busy": 2, "Quiet": 0}
        assert result["total"] == 2


class TestBulkApplications:
    """Test bulk status changes and deletion."""

    async def test_bulk_status_update(self, db, services, factory):
        owner, company = await factory.employer()
        job = await add_job(db, company)
        first = await add_application(db, job, await factory.candidate())
        second = await add_application(db, job, await factory.candidate())

        result = await jobs.bulk_update_application_status(
            db,
            services.evaluator,
            services.audit,
            owner,
            [first.id, second.id],
            ApplicationStatus.SHORTLISTED,
            notes="Strong backend experience",
        )

        assert result == {"updated": 2, "status": "shortlisted"}
        refreshed = await db.get(JobApplication, first.id)
        assert refreshed.status == ApplicationStatus.SHORTLISTED
        assert refreshed.reviewed_by == owner.id
        assert refreshed.notes == "Strong backend experience"

        audited = await db.execute(
            select(func.count())
            .select_from(AuditLog)
            .where(AuditLog.action_type == AuditActionType.APPLICATION_STATUS_CHANGE)
        )
        assert audited.scalar() == 2

    async def test_bulk_status_requires_every_company(self, db, services, factory):
        _, company = await factory.employer()
        _, other_company = await factory.employer()
        reviewer, _ = await factory.team_member(
            company, permissions={"can_review_applications": True}
        )
        own = await add_application(db, await add_job(db, company), await factory.candidate())
        foreign = await add_application(
            db, await add_job(db, other_company), await factory.candidate()
        )

        with pytest.raises(NotFound):
            await jobs.bulk_update_application_status(
                db,
                services.evaluator,
                services.audit,
                reviewer,
                [own.id, foreign.id],
                ApplicationStatus.REJECTED,
            )

        unchanged = await db.execute(
            select(JobApplication.status).where(JobApplication.id == own.id)
        )
        assert unchanged.scalar_one() == ApplicationStatus.APPLIED

    async def test_bulk_status_missing_application(self, db, services, factory):
        owner, company = await factory.employer()
        application = await add_application(
            db, await add_job(db, company), await factory.candidate()
        )

        with pytest.raises(NotFound):
            await jobs.bulk_update_application_status(
                db,
                services.evaluator,
                services.audit,
                owner,
                [application.id, uuid.uuid4()],
                ApplicationStatus.REJECTED,
            )

    async def test_bulk_delete_by_owner(self, db, services, factory):
        owner, company = await factory.employer()
        application = await add_application(
            db, await add_job(db, company), await factory.candidate()
        )

        result = await jobs.bulk_delete_applications(
            db, services.evaluator, services.audit, owner, [application.id]
        )

        assert result == {"deleted": 1}
        remaining = await db.execute(select(func.count()).select_from(JobApplication))
        assert remaining.scalar() == 0

    async def test_bulk_delete_by_primary_owner_member(self, db, services, factory):
        _, company = await factory.employer()
        primary, _ = await factory.team_member(company, role=TeamMemberRole.PRIMARY_OWNER)
        application = await add_application(
            db, await add_job(db, company), await factory.candidate()
        )

        result = await jobs.bulk_delete_applications(
            db, services.evaluator, services.audit, primary, [application.id]
        )

        assert result == {"deleted": 1}

    async def test_bulk_delete_ignores_capability_flags(self, db, services, factory):
        _, company = await factory.employer()
        admin, _ = await factory.team_member(
            company,
            role=TeamMemberRole.ADMIN,
            permissions={"can_review_applications": True, "can_manage_team": True},
        )
        application = await add_application(
            db, await add_job(db, company), await factory.candidate()
        )

        with pytest.raises(AuthorizationDenied, match="primary owner"):
            await jobs.bulk_delete_applications(
                db, services.evaluator, services.audit, admin, [application.id]
            )

    async def test_bulk_delete_of_other_company_reads_as_missing(
        self, db, services, factory
    ):
        _, company = await factory.employer()
        outsider, _ = await factory.employer()
        application = await add_application(
            db, await add_job(db, company), await factory.candidate()
        )

        with pytest.raises(NotFound):
            await jobs.bulk_delete_applications(
                db, services.evaluator, services.audit, outsider, [application.id]
            )
        with pytest.raises(NotFound):
            await jobs.bulk_delete_applications(
                db, services.evaluator, services.audit, outsider, [uuid.uuid4()]
            )

        remaining = await db.execute(select(func.count()).select_from(JobApplication))
        assert remaining.scalar() == 1
