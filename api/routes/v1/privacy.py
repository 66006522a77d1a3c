"""
Privacy and transparency endpoints.

Lets a user manage their privacy settings, request exports of their data
and see who accessed it.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_services, require_active_user
from api.schemas.privacy import DataExportRequest, PrivacySettingsUpdate
from api.services import Services
from api.services import audit as audit_service
from api.services import privacy_settings as privacy_service
from api.services.views import list_profile_views
from database.engine import get_db
from database.models.audit import AuditActionType, AuditCategory
from database.models.users import User

router = APIRouter(prefix="/privacy", tags=["privacy"])


@router.get(
    "/settings",
    summary="Get Privacy Settings",
    description="Get the caller's active privacy settings.",
)
async def get_privacy_settings(
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return {"settings": await privacy_service.get_privacy_settings(db, current_user.id)}


@router.put(
    "/settings",
    summary="Update Privacy Settings",
    description="Replace one or more privacy settings. Each value is validated for its type.",
)
async def update_privacy_settings(
    payload: PrivacySettingsUpdate,
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    settings = await privacy_service.update_privacy_settings(
        db, services.audit, current_user, payload.settings
    )
    return {"settings": settings}


@router.post(
    "/exports",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request Data Export",
    description="Queue an export of the caller's own data.",
)
async def request_data_export(
    payload: DataExportRequest,
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    return await privacy_service.request_data_export(
        db, services.audit, current_user, payload.export_type, payload.export_format
    )


@router.get(
    "/exports",
    summary="Data Export History",
    description="List the caller's data export requests.",
)
async def get_data_export_history(
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return {"exports": await privacy_service.get_data_export_history(db, current_user.id)}


@router.get(
    "/audit-log",
    summary="Audit Log",
    description="Actions performed by or on the caller, newest first.",
)
async def get_audit_log(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    action_types: list[AuditActionType] = Query([]),
    categories: list[AuditCategory] = Query([]),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await audit_service.get_audit_log(
        db,
        current_user.id,
        start_date=start_date,
        end_date=end_date,
        action_types=action_types,
        categories=categories,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/profile-views",
    summary="Profile Views",
    description="Who viewed the caller's profile, newest first.",
)
async def get_profile_views(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_profile_views(db, current_user.id, limit, offset)


@router.get(
    "/transparency",
    summary="Transparency Dashboard",
    description="Analytics, activity timeline, settings and exports in one view.",
)
async def get_transparency_dashboard(
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await privacy_service.get_transparency_dashboard(db, current_user.id, days)
