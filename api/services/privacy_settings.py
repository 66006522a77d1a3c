"""Privacy settings and data export service functions."""

from datetime import timedelta
from typing import Any, Dict, Mapping
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.privacy import validate_setting_value
from api.services.audit import (
    AuditTrail,
    get_activity_timeline,
    get_transparency_analytics,
)
from core.config import settings
from core.utils.datetime import now, ensure_utc
from database.models.audit import AuditActionType, AuditCategory, TargetResourceType
from database.models.privacy import (
    DataExport,
    DataExportFormat,
    DataExportType,
    PrivacySetting,
    PrivacySettingType,
)
from database.models.users import User

logger = logging.getLogger(__name__)


async def get_privacy_settings(db: AsyncSession, user_id: uuid.UUID) -> Dict[str, Any]:
    """Get the active value of every setting the user has set, keyed by type."""
    result = await db.execute(
        select(PrivacySetting)
        .where(PrivacySetting.user_id == user_id, PrivacySetting.is_active.is_(True))
        .order_by(PrivacySetting.created_at.desc())
    )
    active: Dict[str, Any] = {}
    for setting in result.scalars().all():
        active.setdefault(setting.setting_type.value, setting.setting_value)
    return active


async def set_privacy_setting(
    db: AsyncSession,
    user: User,
    setting_type: PrivacySettingType,
    value: Dict[str, Any],
) -> PrivacySetting:
    """
    Append a new active setting, deactivating the current one.

    The caller commits. ``value`` must already be validated.
    """
    effective_at = now()
    await db.execute(
        update(PrivacySetting)
        .where(
            PrivacySetting.user_id == user.id,
            PrivacySetting.setting_type == setting_type,
            PrivacySetting.is_active.is_(True),
        )
        .values(is_active=False, effective_until=effective_at)
    )
    setting = PrivacySetting(
        user_id=user.id,
        setting_type=setting_type,
        setting_value=value,
        is_active=True,
        effective_from=effective_at,
        created_by=user.id,
    )
    db.add(setting)
    return setting


async def update_privacy_settings(
    db: AsyncSession,
    audit: AuditTrail,
    user: User,
    changes: Mapping[PrivacySettingType, Any],
) -> Dict[str, Any]:
    """
    Update one or more privacy settings.

    Every value is validated before anything is written; each change is
    audited after commit.

    Raises:
        ValueError: If any value does not match its setting type
    """
    validated = {
        PrivacySettingType(setting_type): validate_setting_value(
            PrivacySettingType(setting_type), value
        )
        for setting_type, value in changes.items()
    }
    previous = await get_privacy_settings(db, user.id)

    for setting_type, value in validated.items():
        await set_privacy_setting(db, user, setting_type, value)
    await db.commit()

    for setting_type, value in validated.items():
        await audit.record(
            action_type=AuditActionType.PRIVACY_SETTING_CHANGE,
            category=AuditCategory.PRIVACY,
            description=f"Updated {setting_type.value} setting",
            user_id=user.id,
            target_user_id=user.id,
            details={
                "setting_type": setting_type.value,
                "setting_value": value,
                "previous_value": previous.get(setting_type.value),
            },
        )

    logger.info(f"User {user.id} updated privacy settings: {[t.value for t in validated]}")
    return await get_privacy_settings(db, user.id)


def serialize_export(export: DataExport) -> Dict[str, Any]:
    return {
        "id": str(export.id),
        "export_type": export.export_type.value,
        "export_format": export.export_format.value,
        "status": export.status.value,
        "requested_at": ensure_utc(export.requested_at).isoformat(),
        "completed_at": ensure_utc(export.completed_at).isoformat()
        if export.completed_at
        else None,
        "expires_at": ensure_utc(export.expires_at).isoformat() if export.expires_at else None,
    }


async def request_data_export(
    db: AsyncSession,
    audit: AuditTrail,
    user: User,
    export_type: DataExportType,
    export_format: DataExportFormat = DataExportFormat.JSON,
) -> Dict[str, Any]:
    """Queue a data export of the user's own data."""
    requested_at = now()
    export = DataExport(
        user_id=user.id,
        export_type=export_type,
        export_format=export_format,
        requested_at=requested_at,
        expires_at=requested_at + timedelta(days=settings.data_export_ttl_days),
    )
    db.add(export)
    await db.commit()
    await db.refresh(export)

    await audit.record(
        action_type=AuditActionType.DATA_EXPORT,
        category=AuditCategory.DATA,
        description=f"Requested {export_type.value} export in {export_format.value} format",
        user_id=user.id,
        target_user_id=user.id,
        target_resource_id=export.id,
        target_resource_type=TargetResourceType.EXPORT,
        details={
            "export_type": export_type.value,
            "export_format": export_format.value,
            "export_id": str(export.id),
        },
    )
    return serialize_export(export)


async def get_data_export_history(db: AsyncSession, user_id: uuid.UUID) -> list[Dict[str, Any]]:
    result = await db.execute(
        select(DataExport)
        .where(DataExport.user_id == user_id)
        .order_by(DataExport.requested_at.desc())
    )
    return [serialize_export(e) for e in result.scalars().all()]


async def get_transparency_dashboard(
    db: AsyncSession, user_id: uuid.UUID, days: int = 30
) -> Dict[str, Any]:
    """
    Get everything a user can see about how their data was used.

    Args:
        db: Database session
        user_id: Dashboard owner
        days: Trailing window for analytics and timeline

    Returns:
        Dictionary with analytics, activity timeline, active settings and
        export history
    """
    analytics = await get_transparency_analytics(db, user_id, days)
    timeline = await get_activity_timeline(db, user_id, days)
    return {
        "analytics": analytics,
        "activity_timeline": timeline,
        "privacy_settings": await get_privacy_settings(db, user_id),
        "data_exports": await get_data_export_history(db, user_id),
        "period_days": days,
    }
