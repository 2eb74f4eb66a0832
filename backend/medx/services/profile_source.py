import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from datetime import datetime
from medx.models.medication import Medication, load_medications
from medx.models.preferences import NotificationPreferences
from medx.models.profile import DearOne, PatientProfile

logger = logging.getLogger(__name__)


class ProfileSource(ABC):
    """Supplies per-user snapshots of medications, preferences and contacts."""

    @abstractmethod
    async def get_medications(self, user_uid: str) -> List[Medication]:
        ...

    @abstractmethod
    async def get_preferences(self, user_uid: str) -> NotificationPreferences:
        ...

    @abstractmethod
    async def update_preferences(self, user_uid: str, preferences: NotificationPreferences) -> None:
        ...

    async def get_display_name(self, user_uid: str) -> str:
        return ""

    async def get_dear_ones(self, user_uid: str) -> List[DearOne]:
        return []

    async def get_device_tokens(self, user_uid: str) -> List[str]:
        return []

    async def remove_device_tokens(self, user_uid: str, tokens: List[str]) -> None:
        return None


class StaticProfileSource(ProfileSource):

    def __init__(self):
        self._medications: Dict[str, List[Any]] = {}
        self._preferences: Dict[str, NotificationPreferences] = {}
        self._dear_ones: Dict[str, List[DearOne]] = {}
        self._tokens: Dict[str, List[str]] = {}
        self._names: Dict[str, str] = {}

    def set_profile(
        self,
        user_uid: str,
        medications: Optional[List[Any]] = None,
        preferences: Optional[NotificationPreferences] = None,
        dear_ones: Optional[List[DearOne]] = None,
        tokens: Optional[List[str]] = None,
        full_name: Optional[str] = None,
    ) -> None:
        if full_name is not None:
            self._names[user_uid] = full_name
        if medications is not None:
            self._medications[user_uid] = list(medications)
        if preferences is not None:
            self._preferences[user_uid] = preferences
        if dear_ones is not None:
            self._dear_ones[user_uid] = list(dear_ones)
        if tokens is not None:
            self._tokens[user_uid] = list(tokens)

    async def get_medications(self, user_uid: str) -> List[Medication]:
        return load_medications(self._medications.get(user_uid, []))

    async def get_preferences(self, user_uid: str) -> NotificationPreferences:
        return self._preferences.get(user_uid) or NotificationPreferences()

    async def update_preferences(self, user_uid: str, preferences: NotificationPreferences) -> None:
        self._preferences[user_uid] = preferences

    async def get_display_name(self, user_uid: str) -> str:
        return self._names.get(user_uid, "")

    async def get_dear_ones(self, user_uid: str) -> List[DearOne]:
        return list(self._dear_ones.get(user_uid, []))

    async def get_device_tokens(self, user_uid: str) -> List[str]:
        return list(self._tokens.get(user_uid, []))

    async def remove_device_tokens(self, user_uid: str, tokens: List[str]) -> None:
        self._tokens[user_uid] = [t for t in self._tokens.get(user_uid, []) if t not in tokens]


class DocumentProfileSource(ProfileSource):

    async def _profile(self, user_uid: str) -> Optional[PatientProfile]:
        return await PatientProfile.find_one(PatientProfile.user_uid == user_uid)

#------This Function gets the user's medications---------
    async def get_medications(self, user_uid: str) -> List[Medication]:
        profile = await self._profile(user_uid)
        if not profile:
            logger.warning(f"No profile found for user {user_uid}")
            return []
        return load_medications(profile.medications)

#------This Function gets the user's notification preferences---------
    async def get_preferences(self, user_uid: str) -> NotificationPreferences:
        profile = await self._profile(user_uid)
        return profile.notification_preferences if profile else NotificationPreferences()

#------This Function stores the user's notification preferences---------
    async def update_preferences(self, user_uid: str, preferences: NotificationPreferences) -> None:
        profile = await self._profile(user_uid)
        if not profile:
            profile = PatientProfile(user_uid=user_uid, notification_preferences=preferences)
            await profile.insert()
            return
        profile.notification_preferences = preferences
        profile.updated_at = datetime.utcnow()
        await profile.save()

#------This Function gets the user's display name---------
    async def get_display_name(self, user_uid: str) -> str:
        profile = await self._profile(user_uid)
        return profile.full_name if profile else ""

#------This Function gets the user's dear ones---------
    async def get_dear_ones(self, user_uid: str) -> List[DearOne]:
        profile = await self._profile(user_uid)
        return list(profile.dear_ones) if profile else []

#------This Function gets the user's device tokens---------
    async def get_device_tokens(self, user_uid: str) -> List[str]:
        profile = await self._profile(user_uid)
        return list(profile.fcm_tokens) if profile else []

#------This Function removes invalid device tokens---------
    async def remove_device_tokens(self, user_uid: str, tokens: List[str]) -> None:
        profile = await self._profile(user_uid)
        if not profile:
            return
        profile.fcm_tokens = [t for t in profile.fcm_tokens if t not in tokens]
        profile.updated_at = datetime.utcnow()
        await profile.save()
