"""
Integration tests for complete request flows.

Tests end-to-end scenarios:
- Login → access protected resource
- Invite → accept → act as team member
- Candidate privacy settings → employer search and profile view
- Error envelopes for denials
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from api.main import create_app
from core.privacy import COMPANY_HIDDEN
from database.engine import get_db
from database.models.employers import TeamMember

API = "/api/v1"


@pytest.fixture
def app(services, session_factory):
    application = create_app(services=services, manage_database=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def login(client, user, password) -> dict:
    response = await client.post(
        f"{API}/auth/login", json={"email": user.email, "password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


class TestAuthentication:
    """Test login and token handling."""

    async def test_login_then_me(self, client, factory, password):
        owner, _ = await factory.employer()

        headers = await login(client, owner, password)
        response = await client.get(f"{API}/auth/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["email"] == owner.email
        assert response.json()["role"] == "employer"

    async def test_wrong_password(self, client, factory):
        owner, _ = await factory.employer()

        response = await client.post(
            f"{API}/auth/login", json={"email": owner.email, "password": "wrong-password"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "HTTP_EXCEPTION"

    async def test_missing_token(self, client):
        response = await client.get(f"{API}/candidates")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_invalid_token(self, client):
        response = await client.get(
            f"{API}/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    async def test_inactive_user_is_refused(self, client, factory, password):
        owner, _ = await factory.employer()
        headers = await login(client, owner, password)
        owner.is_active = False
        await factory.db.commit()

        response = await client.get(f"{API}/auth/me", headers=headers)

        assert response.status_code == 403

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200


class TestTeamInvitationFlow:
    """Test inviting a member and acting as them."""

    async def test_invite_accept_and_post_job(
        self, client, db, factory, password, email_service
    ):
        owner, company = await factory.employer("Acme")
        owner_headers = await login(client, owner, password)

        invited = await client.post(
            f"{API}/companies/{company.id}/team/invite",
            headers=owner_headers,
            json={"email": "grace@example.com", "first_name": "Grace", "last_name": "Hopper"},
        )
        assert invited.status_code == 201
        body = invited.json()
        assert body["email_sent"] is True
        assert "invitation_token" not in body["team_member"]
        email_service.send_email.assert_awaited_once()

        result = await db.execute(
            select(TeamMember.invitation_token).where(TeamMember.email == "grace@example.com")
        )
        token = result.scalar_one()

        verified = await client.get(f"{API}/team/invitations/{token}")
        assert verified.status_code == 200
        assert verified.json()["company_name"] == "Acme"

        accepted = await client.post(
            f"{API}/team/invitations/accept",
            json={"token": token, "password": "NewPassword1"},
        )
        assert accepted.status_code == 201
        member_headers = {"Authorization": f"Bearer {accepted.json()['access_token']}"}

        posted = await client.post(
            f"{API}/companies/{company.id}/jobs",
            headers=member_headers,
            json={"title": "Backend Engineer", "description": "Build APIs"},
        )
        assert posted.status_code == 201

        listed = await client.get(f"{API}/companies/{company.id}/jobs", headers=member_headers)
        assert listed.status_code == 200
        assert listed.json()["total"] == 1

        reused = await client.post(
            f"{API}/team/invitations/accept",
            json={"token": token, "password": "NewPassword1"},
        )
        assert reused.status_code == 400
        assert reused.json()["error"]["code"] == "INVALID_INPUT"

    async def test_member_cannot_manage_team(self, client, factory, password):
        _, company = await factory.employer()
        recruiter, _ = await factory.team_member(company, permissions={"can_post_jobs": True})
        headers = await login(client, recruiter, password)

        response = await client.get(f"{API}/companies/{company.id}/team", headers=headers)

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "FORBIDDEN"
        assert "requires_subscription" not in error

    async def test_invalid_capability_is_rejected(self, client, factory, password):
        owner, company = await factory.employer()
        headers = await login(client, owner, password)

        response = await client.post(
            f"{API}/companies/{company.id}/team/invite",
            headers=headers,
            json={
                "email": "grace@example.com",
                "first_name": "Grace",
                "last_name": "Hopper",
                "permissions": {"can_fly": True},
            },
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestSubscriptionGating:
    """Test the subscription-required envelope."""

    async def test_owner_without_subscription(self, client, factory, password):
        owner, company = await factory.employer()
        headers = await login(client, owner, password)

        response = await client.post(
            f"{API}/companies/{company.id}/jobs",
            headers=headers,
            json={"title": "Backend Engineer", "description": "Build APIs"},
        )

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "SUBSCRIPTION_REQUIRED"
        assert error["requires_subscription"] is True
        assert error["path"] == f"{API}/companies/{company.id}/jobs"
        assert error["method"] == "POST"

    async def test_other_company_job_is_not_found(self, client, factory, password):
        owner, company = await factory.employer()
        await factory.subscription(owner)
        outsider, _ = await factory.employer()
        owner_headers = await login(client, owner, password)
        outsider_headers = await login(client, outsider, password)

        posted = await client.post(
            f"{API}/companies/{company.id}/jobs",
            headers=owner_headers,
            json={"title": "Backend Engineer", "description": "Build APIs"},
        )
        response = await client.patch(
            f"{API}/jobs/{posted.json()['id']}",
            headers=outsider_headers,
            json={"title": "Taken over"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    async def test_owner_with_subscription(self, client, factory, password):
        owner, company = await factory.employer()
        await factory.subscription(owner)
        headers = await login(client, owner, password)

        response = await client.post(
            f"{API}/companies/{company.id}/jobs",
            headers=headers,
            json={"title": "Backend Engineer", "description": "Build APIs"},
        )

        assert response.status_code == 201


class TestCandidatePrivacyFlow:
    """Test privacy settings as seen by employers."""

    async def test_settings_apply_to_search_and_profile(self, client, factory, password):
        candidate = await factory.candidate()
        owner, _ = await factory.employer("Acme")
        await factory.subscription(owner)
        candidate_headers = await login(client, candidate, password)
        owner_headers = await login(client, owner, password)

        updated = await client.put(
            f"{API}/privacy/settings",
            headers=candidate_headers,
            json={"settings": {"anonymization_level": {"level": "advanced"}}},
        )
        assert updated.status_code == 200
        assert updated.json()["settings"] == {"anonymization_level": {"level": "advanced"}}

        search = await client.get(f"{API}/candidates", headers=owner_headers)
        assert search.status_code == 200
        (listing,) = search.json()["candidates"]
        assert listing["location"] == "Austin Area"
        assert listing["current_company"] == COMPANY_HIDDEN

        profile = await client.get(f"{API}/candidates/{candidate.id}", headers=owner_headers)
        assert profile.status_code == 200
        assert profile.json()["location"] == "Austin Area"

        notifications = await client.get(f"{API}/notifications", headers=candidate_headers)
        assert notifications.json()["unread_count"] == 1

        views = await client.get(f"{API}/privacy/profile-views", headers=candidate_headers)
        assert views.json()["total"] == 1

        dashboard = await client.get(
            f"{API}/privacy/transparency?days=7", headers=candidate_headers
        )
        assert dashboard.status_code == 200
        assert dashboard.json()["analytics"]["total_profile_views"] == 1

    async def test_hidden_profile_is_not_found(self, client, factory, password):
        candidate = await factory.candidate()
        owner, _ = await factory.employer()
        await factory.subscription(owner)
        candidate_headers = await login(client, candidate, password)
        owner_headers = await login(client, owner, password)

        await client.put(
            f"{API}/privacy/settings",
            headers=candidate_headers,
            json={"settings": {"profile_visibility": {"public": False}}},
        )
        response = await client.get(f"{API}/candidates/{candidate.id}", headers=owner_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

        own = await client.get(f"{API}/candidates/{candidate.id}", headers=candidate_headers)
        assert own.status_code == 200

    async def test_invalid_setting_value(self, client, factory, password):
        candidate = await factory.candidate()
        headers = await login(client, candidate, password)

        response = await client.put(
            f"{API}/privacy/settings",
            headers=headers,
            json={"settings": {"anonymization_level": {"level": "extreme"}}},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    async def test_export_request(self, client, factory, password):
        candidate = await factory.candidate()
        headers = await login(client, candidate, password)

        requested = await client.post(
            f"{API}/privacy/exports", headers=headers, json={"export_type": "complete_data"}
        )
        history = await client.get(f"{API}/privacy/exports", headers=headers)
        audit = await client.get(
            f"{API}/privacy/audit-log?action_types=data_export", headers=headers
        )

        assert requested.status_code == 202
        assert [e["id"] for e in history.json()["exports"]] == [requested.json()["id"]]
        assert audit.json()["total"] == 1
