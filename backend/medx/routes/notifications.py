import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from medx.core.firebase import get_current_user_uid
from medx.models.notification import NotificationRecord, NotificationResponse
from medx.services.container import ReminderServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


#------This Function serializes notification---------
def _serialize(record: NotificationRecord) -> NotificationResponse:
    return NotificationResponse(
        id=record.id,
        title=record.title,
        body=record.body,
        kind=record.kind.value,
        channel=record.channel.value,
        read=record.read,
        medication_id=record.medication_id,
        created_at=record.created_at.isoformat(),
        data=record.data,
    )


#------This Function lists notifications---------
@router.get("/")
async def list_notifications(
    unread: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    try:
        if unread:
            records = await services.log.list_unread(uid, limit)
        else:
            records = await services.log.list_recent(uid, limit)
    except Exception as e:
        logger.error(f"Failed to list notifications for user {uid}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve notifications")
    return [_serialize(r) for r in records]


#------This Function marks notification as read---------
@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    if not await services.log.mark_read(uid, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"status": "ok"}


#------This Function clears notifications---------
@router.delete("/")
async def clear_notifications(
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    removed = await services.log.clear(uid)
    return {"status": "ok", "removed": removed}


#------This Function drains in-app toasts---------
@router.get("/toasts")
async def drain_toasts(
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    return services.toasts.drain(uid)


#------This Function triggers an immediate medication check---------
@router.post("/check")
async def check_now(
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    try:
        report = await services.schedulers.trigger_check(uid)
    except Exception as e:
        logger.error(f"Manual medication check failed for user {uid}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to check medications")

    if report is None:
        return {"status": "busy", "message": "A check is already in progress"}
    return {
        "status": "checked",
        "processed": report.processed,
        "dispatched": report.dispatched,
        "suppressed": report.suppressed,
        "failed": report.failed,
    }


#------This Function confirms a taken medication---------
@router.post("/taken/{medication_id}")
async def confirm_taken(
    medication_id: str,
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    medications = await services.profiles.get_medications(uid)
    medication = next((m for m in medications if m.id == medication_id), None)
    if not medication:
        raise HTTPException(status_code=404, detail="Medication not found")

    result = await services.dispatcher.notify_taken(uid, medication, datetime.now())
    return {"status": result.outcome.value, "channel": result.channel.value}


#------This Function sends test notification---------
@router.post("/test")
async def send_test_notification(
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    result = await services.dispatcher.send_test(uid, datetime.now())
    if not result.delivered:
        raise HTTPException(status_code=503, detail="Notification could not be delivered")
    return {"status": "sent", "channel": result.channel.value}


#------This Function gets the scheduler status---------
@router.get("/scheduler")
async def scheduler_status(
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    return services.schedulers.status(uid)


#------This Function starts or stops the user's scheduler---------
@router.post("/scheduler/refresh")
async def refresh_scheduler(
    uid: str = Depends(get_current_user_uid),
    services: ReminderServices = Depends(get_services),
):
    running = await services.schedulers.refresh(uid)
    return {"state": "running" if running else "stopped"}
