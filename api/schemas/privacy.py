"""Privacy settings and transparency API schemas."""

from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from api.schemas.common import PaginationParams

from database.models.privacy import (
    PrivacySettingType,
    DataExportType,
    DataExportFormat,
)


class _SettingValue(BaseModel):
    model_config = ConfigDict(extra="forbid")


class VisibilityValue(_SettingValue):
    public: bool


class EnabledValue(_SettingValue):
    enabled: bool


class AnonymizationValue(_SettingValue):
    level: Literal["none", "basic", "advanced", "maximum"]


class RetentionValue(_SettingValue):
    days: int = Field(..., ge=30, le=3650)


class NotificationPreferencesValue(_SettingValue):
    profile_views: bool = True
    applications: bool = True
    email: bool = True


class ConsentValue(_SettingValue):
    consents: dict[str, bool] = Field(default_factory=dict)


SETTING_VALUE_SCHEMAS: dict[PrivacySettingType, type[BaseModel]] = {
    PrivacySettingType.PROFILE_VISIBILITY: VisibilityValue,
    PrivacySettingType.REFERENCE_VISIBILITY: VisibilityValue,
    PrivacySettingType.WORK_HISTORY_VISIBILITY: VisibilityValue,
    PrivacySettingType.CONTACT_INFO_SHARING: EnabledValue,
    PrivacySettingType.THIRD_PARTY_SHARING: EnabledValue,
    PrivacySettingType.EXPORT_PERMISSIONS: EnabledValue,
    PrivacySettingType.ANONYMIZATION_LEVEL: AnonymizationValue,
    PrivacySettingType.DATA_RETENTION_PERIOD: RetentionValue,
    PrivacySettingType.NOTIFICATION_PREFERENCES: NotificationPreferencesValue,
    PrivacySettingType.CONSENT_TRACKING: ConsentValue,
}


def validate_setting_value(
    setting_type: PrivacySettingType, value: Any
) -> dict[str, Any]:
    """
    Validate a setting value against the schema of its type.

    Raises:
        ValueError: If the value does not match (pydantic's ValidationError
            is a ValueError)
    """
    if not isinstance(value, dict):
        raise ValueError(f"Value of {setting_type.value} must be an object")
    schema = SETTING_VALUE_SCHEMAS[PrivacySettingType(setting_type)]
    return schema.model_validate(value).model_dump()


class PrivacySettingsUpdate(BaseModel):
    """Schema for updating one or more privacy settings."""

    settings: dict[PrivacySettingType, dict[str, Any]] = Field(..., min_length=1)


class DataExportRequest(BaseModel):
    """Schema for requesting a data export."""

    export_type: DataExportType
    export_format: DataExportFormat = DataExportFormat.JSON


class CandidateSearchParams(PaginationParams):
    """Filters for candidate search."""

    search: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    skills: list[str] = Field(default_factory=list)
    min_experience: Optional[int] = Field(None, ge=0)
