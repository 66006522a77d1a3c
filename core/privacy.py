"""
Privacy filtering of candidate profiles.

A candidate's active privacy settings decide what a non-owner viewer sees:
whether the profile is listed at all, whether contact details are shown,
how much of the current position is anonymized, and whether references are
included in the detail view. Settings are read fresh on every request.
"""

import copy
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.privacy import PrivacySetting, PrivacySettingType

logger = logging.getLogger(__name__)

CONTACT_RESTRICTED = "[Contact Restricted]"
COMPANY_HIDDEN = "[Company Name Hidden]"
TITLE_HIDDEN = "[Job Title Hidden]"
LOCATION_HIDDEN = "[Location Hidden]"
AREA_SUFFIX = " Area"

CONTACT_FIELDS = ("email", "phone")


class AnonymizationLevel(str, Enum):
    """Anonymization tiers, from least to most redaction."""

    NONE = "none"
    BASIC = "basic"
    ADVANCED = "advanced"
    MAXIMUM = "maximum"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def at_least(self, other: "AnonymizationLevel") -> bool:
        return self.rank >= other.rank


_LEVEL_ORDER = [
    AnonymizationLevel.NONE,
    AnonymizationLevel.BASIC,
    AnonymizationLevel.ADVANCED,
    AnonymizationLevel.MAXIMUM,
]


@dataclass(frozen=True)
class PrivacyPreferences:
    """
    The slice of a candidate's settings the filter acts on.

    Absent settings fall back to the open defaults.
    """

    profile_public: bool = True
    contact_sharing: bool = True
    anonymization: AnonymizationLevel = AnonymizationLevel.NONE
    references_public: bool = True

    @classmethod
    def from_settings(
        cls, settings: Mapping[PrivacySettingType, Mapping[str, Any]]
    ) -> "PrivacyPreferences":
        """
        Read preferences from active setting values keyed by type.

        Only an explicit ``public: true`` lists a profile once a visibility
        setting exists; contact info and references are hidden only by an
        explicit ``false``.
        """
        visibility = settings.get(PrivacySettingType.PROFILE_VISIBILITY)
        contact = settings.get(PrivacySettingType.CONTACT_INFO_SHARING)
        anonymization = settings.get(PrivacySettingType.ANONYMIZATION_LEVEL)
        references = settings.get(PrivacySettingType.REFERENCE_VISIBILITY)

        level = AnonymizationLevel.NONE
        if anonymization is not None:
            try:
                level = AnonymizationLevel(anonymization.get("level", "none"))
            except ValueError:
                logger.warning(
                    f"Unknown anonymization level {anonymization.get('level')!r}, "
                    "applying none"
                )

        return cls(
            profile_public=visibility is None or visibility.get("public") is True,
            contact_sharing=contact is None or contact.get("enabled") is not False,
            anonymization=level,
            references_public=references is None
            or references.get("public") is not False,
        )


def is_visible(preferences: PrivacyPreferences, is_owner: bool) -> bool:
    """Check whether a profile may appear to this viewer at all."""
    return is_owner or preferences.profile_public


def _area_of(location: str) -> str:
    if location == LOCATION_HIDDEN:
        return location
    if "," not in location and location.endswith(AREA_SUFFIX):
        return location
    return location.split(",", 1)[0].strip() + AREA_SUFFIX


def apply_privacy(
    profile: Mapping[str, Any],
    preferences: PrivacyPreferences,
    is_owner: bool,
    include_references: bool = True,
) -> dict[str, Any]:
    """
    Apply privacy preferences to an outbound profile representation.

    Each step is evaluated independently; the contact gate runs before
    anonymization. The input is not modified, and applying the filter to
    its own output returns the same result.

    Args:
        profile: Profile fields (email, phone, current_company, current_title,
            location, references, ...)
        preferences: Candidate's privacy preferences
        is_owner: The viewer is the candidate
        include_references: Apply the reference step (detail view only)

    Returns:
        Filtered copy of the profile
    """
    filtered = copy.deepcopy(dict(profile))
    if is_owner:
        return filtered

    # Contact info gate
    if not preferences.contact_sharing:
        for key in CONTACT_FIELDS:
            if key in filtered:
                filtered[key] = CONTACT_RESTRICTED

    # Anonymization tiers
    level = preferences.anonymization
    if level.at_least(AnonymizationLevel.BASIC):
        if "current_company" in filtered:
            filtered["current_company"] = COMPANY_HIDDEN
    if level.at_least(AnonymizationLevel.MAXIMUM):
        if "current_title" in filtered:
            filtered["current_title"] = TITLE_HIDDEN
        if "location" in filtered:
            filtered["location"] = LOCATION_HIDDEN
    elif level.at_least(AnonymizationLevel.ADVANCED):
        if filtered.get("location"):
            filtered["location"] = _area_of(filtered["location"])

    # Reference visibility
    if include_references and not preferences.references_public:
        if "references" in filtered:
            filtered["references"] = []

    return filtered


class PrivacyFilter:
    """Loads candidate settings and applies them to profiles."""

    async def load_preferences(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> PrivacyPreferences:
        """Load the active privacy preferences of one user."""
        by_user = await self.load_preferences_many(db, [user_id])
        return by_user[user_id]

    async def load_preferences_many(
        self, db: AsyncSession, user_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, PrivacyPreferences]:
        """
        Load active privacy preferences for several users in one query.

        Args:
            db: Database session
            user_ids: Candidates to load

        Returns:
            Preferences keyed by user id; users without settings get defaults
        """
        user_ids = list(user_ids)
        raw: dict[uuid.UUID, dict[PrivacySettingType, dict[str, Any]]] = {
            user_id: {} for user_id in user_ids
        }
        if user_ids:
            result = await db.execute(
                select(PrivacySetting)
                .where(
                    PrivacySetting.user_id.in_(user_ids),
                    PrivacySetting.is_active.is_(True),
                )
                .order_by(PrivacySetting.created_at)
            )
            for setting in result.scalars().all():
                raw[setting.user_id][setting.setting_type] = setting.setting_value or {}
        return {
            user_id: PrivacyPreferences.from_settings(values)
            for user_id, values in raw.items()
        }

    async def filter_profile(
        self,
        db: AsyncSession,
        candidate_id: uuid.UUID,
        viewer_id: Optional[uuid.UUID],
        profile: Mapping[str, Any],
        include_references: bool = True,
    ) -> dict[str, Any]:
        """Load the candidate's preferences and filter ``profile`` for the viewer."""
        preferences = await self.load_preferences(db, candidate_id)
        return apply_privacy(
            profile,
            preferences,
            is_owner=viewer_id == candidate_id,
            include_references=include_references,
        )
