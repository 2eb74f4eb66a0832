from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator
from medx.core.config import settings


class NotificationPreferences(BaseModel):
    reminder_notifications: bool = Field(default=True, alias="reminderNotifications")
    missed_dose_alerts: bool = Field(default=True, alias="missedDoseAlerts")
    reminder_timing: int = Field(
        default_factory=lambda: settings.default_reminder_timing,
        alias="reminderTiming",
    )

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("reminder_timing", mode="before")
    @classmethod
    def validate_reminder_timing(cls, v: Any) -> int:
        if v is None or v == "":
            return settings.default_reminder_timing
        try:
            minutes = int(str(v).strip())
        except ValueError:
            raise ValueError(f"reminderTiming must be a number of minutes, got {v!r}")
        if minutes < 0:
            raise ValueError("reminderTiming cannot be negative")
        return minutes


class NotificationPreferencesUpdate(BaseModel):
    reminder_notifications: Optional[bool] = Field(default=None, alias="reminderNotifications")
    missed_dose_alerts: Optional[bool] = Field(default=None, alias="missedDoseAlerts")
    reminder_timing: Optional[int] = Field(default=None, alias="reminderTiming")

    class Config:
        populate_by_name = True


class PreferenceGate:
    """Read side of the current preference snapshot.

    The snapshot is replaced wholesale by whoever owns the user's settings;
    readers pick the new values up on their next call.
    """

    def __init__(self, preferences: Optional[NotificationPreferences] = None):
        self._preferences = preferences or NotificationPreferences()

    @property
    def snapshot(self) -> NotificationPreferences:
        return self._preferences

    def replace(self, preferences: NotificationPreferences) -> None:
        self._preferences = preferences

    def is_reminder_enabled(self) -> bool:
        return self._preferences.reminder_notifications

    def is_missed_alert_enabled(self) -> bool:
        return self._preferences.missed_dose_alerts

    def lead_minutes(self) -> int:
        return self._preferences.reminder_timing

    def any_enabled(self) -> bool:
        return self.is_reminder_enabled() or self.is_missed_alert_enabled()
