"""
Tests for privacy settings, data exports and the transparency views.

Tests:
- Validated, append-only setting updates
- Audit entries for setting changes and exports
- Audit log queries and the transparency dashboard
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from api.services import privacy_settings
from api.services.audit import get_audit_log
from api.services.views import ViewContext, list_profile_views
from core.utils.datetime import now
from database.models.audit import AuditActionType, AuditCategory, AuditLog
from database.models.privacy import (
    DataExportFormat,
    DataExportStatus,
    DataExportType,
    PrivacySetting,
    PrivacySettingType,
    ViewerType,
)


async def settings_rows(db, user, setting_type):
    result = await db.execute(
        select(PrivacySetting)
        .where(PrivacySetting.user_id == user.id, PrivacySetting.setting_type == setting_type)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


class TestPrivacySettings:
    """Test reading and updating settings."""

    async def test_no_settings(self, db, factory):
        candidate = await factory.candidate()

        assert await privacy_settings.get_privacy_settings(db, candidate.id) == {}

    async def test_update_appends_and_deactivates_previous(self, db, services, factory):
        candidate = await factory.candidate()
        await factory.privacy(
            candidate, PrivacySettingType.ANONYMIZATION_LEVEL, {"level": "basic"}
        )

        result = await privacy_settings.update_privacy_settings(
            db,
            services.audit,
            candidate,
            {PrivacySettingType.ANONYMIZATION_LEVEL: {"level": "advanced"}},
        )

        assert result == {"anonymization_level": {"level": "advanced"}}
        rows = await settings_rows(db, candidate, PrivacySettingType.ANONYMIZATION_LEVEL)
        assert len(rows) == 2
        old = next(r for r in rows if r.setting_value == {"level": "basic"})
        new = next(r for r in rows if r.setting_value == {"level": "advanced"})
        assert not old.is_active
        assert old.effective_until is not None
        assert new.is_active
        assert new.created_by == candidate.id

    async def test_several_settings_at_once(self, db, services, factory):
        candidate = await factory.candidate()

        result = await privacy_settings.update_privacy_settings(
            db,
            services.audit,
            candidate,
            {
                PrivacySettingType.PROFILE_VISIBILITY: {"public": True},
                PrivacySettingType.CONTACT_INFO_SHARING: {"enabled": False},
            },
        )

        assert result == {
            "profile_visibility": {"public": True},
            "contact_info_sharing": {"enabled": False},
        }

    @pytest.mark.parametrize(
        "setting_type,value",
        [
            (PrivacySettingType.ANONYMIZATION_LEVEL, {"level": "extreme"}),
            (PrivacySettingType.PROFILE_VISIBILITY, {"public": "yes please"}),
            (PrivacySettingType.CONTACT_INFO_SHARING, {"enabled": True, "extra": 1}),
            (PrivacySettingType.DATA_RETENTION_PERIOD, {"days": 1}),
            (PrivacySettingType.PROFILE_VISIBILITY, "public"),
        ],
    )
    async def test_invalid_value_rejected(self, db, services, factory, setting_type, value):
        candidate = await factory.candidate()

        with pytest.raises(ValueError):
            await privacy_settings.update_privacy_settings(
                db, services.audit, candidate, {setting_type: value}
            )

    async def test_one_invalid_value_writes_nothing(self, db, services, factory):
        candidate = await factory.candidate()

        with pytest.raises(ValueError):
            await privacy_settings.update_privacy_settings(
                db,
                services.audit,
                candidate,
                {
                    PrivacySettingType.PROFILE_VISIBILITY: {"public": False},
                    PrivacySettingType.ANONYMIZATION_LEVEL: {"level": "extreme"},
                },
            )

        count = await db.execute(select(func.count()).select_from(PrivacySetting))
        assert count.scalar() == 0

    async def test_changes_are_audited_with_previous_value(self, db, services, factory):
        candidate = await factory.candidate()
        await factory.privacy(
            candidate, PrivacySettingType.CONTACT_INFO_SHARING, {"enabled": True}
        )

        await privacy_settings.update_privacy_settings(
            db,
            services.audit,
            candidate,
            {PrivacySettingType.CONTACT_INFO_SHARING: {"enabled": False}},
        )

        result = await db.execute(
            select(AuditLog).where(AuditLog.action_type == AuditActionType.PRIVACY_SETTING_CHANGE)
        )
        entry = result.scalar_one()
        assert entry.action_category == AuditCategory.PRIVACY
        assert entry.details == {
            "setting_type": "contact_info_sharing",
            "setting_value": {"enabled": False},
            "previous_value": {"enabled": True},
        }

    async def test_hiding_profile_takes_effect(self, db, services, factory):
        candidate = await factory.candidate()

        await privacy_settings.update_privacy_settings(
            db,
            services.audit,
            candidate,
            {PrivacySettingType.PROFILE_VISIBILITY: {"public": False}},
        )

        preferences = await services.privacy_filter.load_preferences(db, candidate.id)
        assert not preferences.profile_public


class TestDataExports:
    """Test export requests."""

    async def test_request_export(self, db, services, factory):
        candidate = await factory.candidate()

        export = await privacy_settings.request_data_export(
            db, services.audit, candidate, DataExportType.COMPLETE_DATA, DataExportFormat.CSV
        )

        assert export["status"] == DataExportStatus.PENDING.value
        assert export["export_format"] == "csv"

        history = await privacy_settings.get_data_export_history(db, candidate.id)
        assert [e["id"] for e in history] == [export["id"]]

        result = await db.execute(
            select(AuditLog).where(AuditLog.action_type == AuditActionType.DATA_EXPORT)
        )
        entry = result.scalar_one()
        assert entry.action_category == AuditCategory.DATA
        assert entry.target_resource_id == export["id"]

    async def test_export_expires_after_configured_days(self, db, services, factory):
        candidate = await factory.candidate()

        export = await privacy_settings.request_data_export(
            db, services.audit, candidate, DataExportType.PROFILE_DATA
        )

        requested = datetime.fromisoformat(export["requested_at"])
        expires = datetime.fromisoformat(export["expires_at"])
        assert expires - requested == timedelta(days=7)

    async def test_history_is_per_user(self, db, services, factory):
        candidate = await factory.candidate()
        other = await factory.candidate()
        await privacy_settings.request_data_export(
            db, services.audit, other, DataExportType.PROFILE_DATA
        )

        assert await privacy_settings.get_data_export_history(db, candidate.id) == []


class TestAuditQueries:
    """Test the audit log and profile-view listings."""

    async def write(self, services, **kwargs):
        defaults = {
            "action_type": AuditActionType.PROFILE_VIEW,
            "category": AuditCategory.PROFILE,
            "description": "entry",
        }
        defaults.update(kwargs)
        return await services.audit.write(**defaults)

    async def test_entries_by_or_about_user(self, db, services, factory):
        candidate = await factory.candidate()
        employer = await factory.user()
        stranger = await factory.user()
        await self.write(services, user_id=employer.id, target_user_id=candidate.id)
        await self.write(
            services,
            action_type=AuditActionType.PRIVACY_SETTING_CHANGE,
            category=AuditCategory.PRIVACY,
            user_id=candidate.id,
        )
        await self.write(services, user_id=stranger.id)

        result = await get_audit_log(db, candidate.id)

        assert result["total"] == 2

    async def test_filters(self, db, services, factory):
        candidate = await factory.candidate()
        await self.write(services, target_user_id=candidate.id)
        await self.write(
            services,
            action_type=AuditActionType.DATA_EXPORT,
            category=AuditCategory.DATA,
            user_id=candidate.id,
        )

        by_type = await get_audit_log(
            db, candidate.id, action_types=[AuditActionType.DATA_EXPORT]
        )
        by_category = await get_audit_log(
            db, candidate.id, categories=[AuditCategory.PROFILE]
        )
        future = await get_audit_log(db, candidate.id, start_date=now() + timedelta(hours=1))

        assert [e["action_type"] for e in by_type["logs"]] == ["data_export"]
        assert [e["action_type"] for e in by_category["logs"]] == ["profile_view"]
        assert future["total"] == 0

    async def test_pagination(self, db, services, factory):
        candidate = await factory.candidate()
        for _ in range(3):
            await self.write(services, target_user_id=candidate.id)

        page = await get_audit_log(db, candidate.id, limit=2, offset=2)

        assert page["total"] == 3
        assert len(page["logs"]) == 1

    async def test_profile_views_listing(self, db, services, factory):
        candidate = await factory.candidate()
        viewer = await factory.user()
        await services.view_recorder.record_view(
            candidate.id,
            ViewContext(
                viewer_id=viewer.id,
                viewer_type=ViewerType.EMPLOYER,
                viewer_email=viewer.email,
                viewer_company="Acme",
            ),
        )

        result = await list_profile_views(db, candidate.id)

        assert result["total"] == 1
        assert result["views"][0]["viewer_company"] == "Acme"
        assert "viewer_email" not in result["views"][0]


class TestTransparencyDashboard:
    """Test the combined transparency view."""

    async def test_dashboard(self, db, services, factory):
        candidate = await factory.candidate()
        viewer = await factory.user()
        await services.view_recorder.record_view(
            candidate.id,
            ViewContext(viewer_id=viewer.id, viewer_type=ViewerType.RECRUITER),
        )
        await privacy_settings.update_privacy_settings(
            db,
            services.audit,
            candidate,
            {PrivacySettingType.ANONYMIZATION_LEVEL: {"level": "maximum"}},
        )
        await privacy_settings.request_data_export(
            db, services.audit, candidate, DataExportType.AUDIT_LOG
        )

        dashboard = await privacy_settings.get_transparency_dashboard(db, candidate.id, days=7)

        analytics = dashboard["analytics"]
        assert dashboard["period_days"] == 7
        assert analytics["total_profile_views"] == 1
        assert analytics["total_activities"] == 3
        assert analytics["activity_stats"] == {
            "profile_view": 1,
            "privacy_setting_change": 1,
            "data_export": 1,
        }
        (day,) = analytics["daily_stats"].values()
        assert day["profile_views"] == 1
        assert day["privacy_changes"] == 1
        assert day["data_access"] == 1
        assert sum(len(v) for v in dashboard["activity_timeline"].values()) == 3
        assert dashboard["privacy_settings"] == {"anonymization_level": {"level": "maximum"}}
        assert len(dashboard["data_exports"]) == 1
