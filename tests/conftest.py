"""Shared fixtures and utilities for tests."""

import os
import tempfile

# Settings are read at import time, so the environment must be ready first
_TEST_DB_DIR = tempfile.mkdtemp(prefix="talentgate-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB_DIR}/app.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("SENDGRID_API_KEY", "")

from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.services import build_services
from core.integrations.email import EmailResult, EmailService
from core.security import hash_password
from database.engine import Base, import_models
from database.models.employers import (
    EmployerProfile,
    InvitationStatus,
    TeamMember,
    TeamMemberRole,
)
from database.models.privacy import PrivacySetting, PrivacySettingType
from database.models.subscriptions import Subscription, SubscriptionStatus
from database.models.users import CandidateProfile, User, UserRole

TEST_PASSWORD = "CorrectHorse9"


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    import_models()
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_service():
    """Email sender that records calls instead of talking to SendGrid."""
    service = AsyncMock(spec=EmailService)
    service.send_email.return_value = EmailResult(success=True, message_id="msg-123")
    return service


@pytest.fixture
def services(session_factory, email_service):
    return build_services(session_factory=session_factory, email=email_service)


# ==================== Factories ==================== #

class Factory:
    """Creates committed rows for tests."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def user(
        self,
        role: UserRole = UserRole.CANDIDATE,
        email: Optional[str] = None,
        **fields: Any,
    ) -> User:
        n = self._next()
        fields.setdefault("first_name", f"First{n}")
        fields.setdefault("last_name", f"Last{n}")
        fields.setdefault("password_hash", hash_password(TEST_PASSWORD))
        return await self._save(
            User(email=email or f"user{n}@example.com", role=role, **fields)
        )

    async def employer(self, company_name: Optional[str] = None) -> tuple[User, EmployerProfile]:
        owner = await self.user(UserRole.EMPLOYER)
        company = await self._save(
            EmployerProfile(
                user_id=owner.id,
                company_name=company_name or f"Company {self._next()}",
            )
        )
        return owner, company

    async def team_member(
        self,
        company: EmployerProfile,
        role: TeamMemberRole = TeamMemberRole.RECRUITER,
        permissions: Optional[dict[str, bool]] = None,
        is_active: bool = True,
        status: InvitationStatus = InvitationStatus.ACCEPTED,
        expires_at=None,
        with_user: bool = True,
        **fields: Any,
    ) -> tuple[Optional[User], TeamMember]:
        user = await self.user(UserRole.TEAM_MEMBER) if with_user else None
        n = self._next()
        member = await self._save(
            TeamMember(
                employer_profile_id=company.id,
                user_id=user.id if user else None,
                email=user.email if user else f"invitee{n}@example.com",
                first_name=user.first_name if user else "Invited",
                last_name=user.last_name if user else f"Member{n}",
                role=role,
                permissions=permissions or {},
                is_active=is_active,
                invitation_status=status,
                invitation_expires_at=expires_at,
                **fields,
            )
        )
        return user, member

    async def candidate(self, **profile: Any) -> User:
        user = await self.user(
            UserRole.CANDIDATE, phone=profile.pop("phone", "512-555-0100")
        )
        profile.setdefault("location", "Austin, TX")
        profile.setdefault("current_title", "Backend Engineer")
        profile.setdefault("current_company", "Initech")
        profile.setdefault("skills", ["python", "sql"])
        profile.setdefault("experience_years", 5)
        profile.setdefault(
            "references", [{"name": "Bill Lumbergh", "relationship": "manager"}]
        )
        await self._save(CandidateProfile(user_id=user.id, **profile))
        return user

    async def privacy(
        self, user: User, setting_type: PrivacySettingType, value: dict[str, Any]
    ) -> PrivacySetting:
        return await self._save(
            PrivacySetting(
                user_id=user.id,
                setting_type=setting_type,
                setting_value=value,
                created_by=user.id,
            )
        )

    async def subscription(
        self, user: User, status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    ) -> Subscription:
        return await self._save(Subscription(user_id=user.id, status=status))


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def password():
    """Plain-text password of every factory-made user."""
    return TEST_PASSWORD
