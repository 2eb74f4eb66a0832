from beanie import Document, Indexed
from pydantic import BaseModel, Field
from typing import Any, Dict, List
from datetime import datetime
from medx.models.preferences import NotificationPreferences


class DearOne(BaseModel):
    name: str
    email: str = ""
    phone: str = ""
    relationship: str = ""
    missed_dose: bool = Field(default=True, alias="missedDose")
    low_stock: bool = Field(default=False, alias="lowStock")

    class Config:
        populate_by_name = True


class PatientProfile(Document):
    user_uid: Indexed(str, unique=True)
    full_name: str = ""
    medications: List[Dict[str, Any]] = Field(default_factory=list)
    notification_preferences: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    dear_ones: List[DearOne] = Field(default_factory=list)
    fcm_tokens: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "patient_profiles"
