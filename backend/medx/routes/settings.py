import logging
from fastapi import APIRouter, Depends
from medx.core.firebase import get_current_user_uid
from medx.models.preferences import NotificationPreferences, NotificationPreferencesUpdate
from medx.services.container import ReminderServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


#------This Function gets notification preferences---------
@router.get("/notifications")
async def get_notification_settings(
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    preferences = await services.profiles.get_preferences(uid)
    return preferences.model_dump(by_alias=True)


#------This Function updates notification preferences---------
@router.patch("/notifications")
async def update_notification_settings(
    body: NotificationPreferencesUpdate,
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    current = await services.profiles.get_preferences(uid)
    updates = body.model_dump(exclude_none=True)
    preferences = NotificationPreferences.model_validate({**current.model_dump(), **updates})
    await services.profiles.update_preferences(uid, preferences)

    running = await services.schedulers.refresh(uid)
    logger.info(f"Updated notification preferences for user {uid}, scheduler running={running}")
    return {
        "notifications": preferences.model_dump(by_alias=True),
        "scheduler": "running" if running else "stopped",
    }
