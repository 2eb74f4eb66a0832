import os
import logging
from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


ENV_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"


class Settings(BaseSettings):

    environment: str = "development"
    server_host: str = "0.0.0.0"
    port: int = 8001


    mongodb_uri: str = "mongodb://localhost:27017"
    db_name: str = "medx"


    firebase_credentials_path: str = "./firebase-credentials.json"


    poll_interval_seconds: float = 30.0
    missed_window_minutes: int = 60
    default_reminder_timing: int = 15
    schedule_horizon_days: int = 30
    low_stock_threshold: int = 5
    toast_buffer_size: int = 50


    caregiver_webhook_url: str = ""
    caregiver_missed_threshold_minutes: int = 30
    caregiver_timeout: float = 10.0

#------This Function validates the poll interval---------
    @field_validator("poll_interval_seconds")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        return v

#------This Function validates the minute windows---------
    @field_validator(
        "missed_window_minutes",
        "default_reminder_timing",
        "caregiver_missed_threshold_minutes",
    )
    @classmethod
    def validate_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("window minutes cannot be negative")
        return v

#------This Function validates the horizon---------
    @field_validator("schedule_horizon_days", "toast_buffer_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._validate_production_settings()

    def _validate_production_settings(self):
        if ENV_PRODUCTION and not os.path.exists(self.firebase_credentials_path):
            logger.warning(
                "Firebase credentials not found at %s. "
                "Native push notifications will fall back to in-app toasts.",
                self.firebase_credentials_path,
            )
        if not self.caregiver_webhook_url:
            logger.debug("CAREGIVER_WEBHOOK_URL is not set. Caregiver alerts will only be logged.")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
