import logging
from dataclasses import dataclass
from typing import Optional
from medx.services.caregivers import CaregiverNotifier
from medx.services.channels import FallbackChannel, NativeChannel, PushSurface, ToastSurface
from medx.services.dispatcher import NotificationDispatcher
from medx.services.notification_log import DocumentNotificationLog, NotificationLog
from medx.services.profile_source import DocumentProfileSource, ProfileSource
from medx.services.scheduler import ReminderScheduler, SchedulerRegistry

logger = logging.getLogger(__name__)


@dataclass
class ReminderServices:
    profiles: ProfileSource
    log: NotificationLog
    toasts: ToastSurface
    dispatcher: NotificationDispatcher
    schedulers: SchedulerRegistry


_services: Optional[ReminderServices] = None


#------This Function wires the reminder services together---------
def build_services(
    profiles: Optional[ProfileSource] = None,
    log: Optional[NotificationLog] = None,
    toasts: Optional[ToastSurface] = None,
    native: Optional[NativeChannel] = None,
    caregivers: Optional[CaregiverNotifier] = None,
) -> ReminderServices:
    profiles = profiles or DocumentProfileSource()
    log = log or DocumentNotificationLog()
    toasts = toasts or ToastSurface()
    if native is None:
        native = NativeChannel(
            PushSurface(profiles.get_device_tokens, profiles.remove_device_tokens)
        )
    caregivers = caregivers or CaregiverNotifier(profiles)

    dispatcher = NotificationDispatcher(
        log=log,
        fallback=FallbackChannel(toasts),
        native=native,
        caregivers=caregivers,
    )
    registry = SchedulerRegistry(lambda uid: ReminderScheduler(uid, profiles, dispatcher))
    return ReminderServices(
        profiles=profiles,
        log=log,
        toasts=toasts,
        dispatcher=dispatcher,
        schedulers=registry,
    )


#------This Function installs the application-wide services---------
def init_services(services: Optional[ReminderServices] = None) -> ReminderServices:
    global _services
    _services = services or build_services()
    logger.info("Reminder services initialized")
    return _services


#------This Function returns the application-wide services---------
def get_services() -> ReminderServices:
    if _services is None:
        raise RuntimeError("Reminder services not initialized. Call init_services() first.")
    return _services


#------This Function stops every scheduler---------
async def shutdown_services() -> None:
    global _services
    if _services is not None:
        await _services.schedulers.stop_all()
        _services = None
