import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from datetime import date, datetime, timedelta
from medx.core.config import settings
from medx.core.errors import Result
from medx.models.medication import Medication
from medx.models.notification import ChannelName, NotificationKey, NotificationKind, NotificationRecord
from medx.services.caregivers import CaregiverNotifier
from medx.services.channels import FallbackChannel, NativeChannel, select_channels
from medx.services.classifier import DoseEvent
from medx.services.notification_log import NotificationLog

logger = logging.getLogger(__name__)


DASHBOARD_VIEW = "/dashboard"
MEDICATIONS_VIEW = "/add-medication"


class DispatchOutcome(str, Enum):
    DELIVERED = "delivered"
    SUPPRESSED = "suppressed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DispatchResult:
    outcome: DispatchOutcome
    kind: NotificationKind
    channel: ChannelName = ChannelName.NONE
    record_id: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.outcome == DispatchOutcome.DELIVERED


#------This Function appends instructions to a notification body---------
def _with_instructions(body: str, medication: Medication) -> str:
    if medication.instructions:
        return f"{body}\nInstructions: {medication.instructions}"
    return body


#------This Function builds the reminder and missed dose texts---------
def compose_dose_message(medication: Medication, event: DoseEvent, kind: NotificationKind) -> tuple:
    dose = medication.dosage or "prescribed"
    if kind == NotificationKind.MISSED:
        title = f"Time to take {medication.name}!"
        body = f"Your {dose} dose of {medication.name} is {abs(event.diff)} minutes overdue."
    elif event.diff > 0:
        title = f"Medication Reminder: {medication.name}"
        body = f"Your {dose} dose of {medication.name} is due in {event.diff} minutes."
    else:
        title = f"Medication Reminder: {medication.name}"
        body = f"Your {dose} dose of {medication.name} is due now."
    return title, _with_instructions(body, medication)


class NotificationDispatcher:
    """Delivers notifications through the best available channel and logs them.

    Dose reminders, missed-dose alerts and low-stock alerts are delivered at
    most once per identity. Nothing here raises to the caller: every failure
    ends up in the returned ``DispatchResult``.
    """

    def __init__(
        self,
        log: NotificationLog,
        fallback: FallbackChannel,
        native: Optional[NativeChannel] = None,
        caregivers: Optional[CaregiverNotifier] = None,
    ):
        self.log = log
        self.fallback = fallback
        self.native = native
        self.caregivers = caregivers
        self._announced: Set[NotificationKey] = set()
        self._pruned_on: Optional[date] = None

#------This Function drops announced identities from before yesterday---------
    def forget_before(self, today: date) -> int:
        if self._pruned_on == today:
            return 0
        cutoff = today - timedelta(days=1)
        stale = {key for key in self._announced if key.calendar_day < cutoff}
        self._announced -= stale
        self._pruned_on = today
        if self.caregivers:
            self.caregivers.forget_before(cutoff)
        if stale:
            logger.debug(f"Forgot {len(stale)} announced notification(s) from before {cutoff}")
        return len(stale)

#------This Function checks whether an identity was already announced---------
    async def _already_announced(self, key: NotificationKey) -> bool:
        if key in self._announced:
            return True
        try:
            if await self.log.exists(key):
                self._announced.add(key)
                return True
        except Exception as e:
            logger.warning(f"Could not check notification log for {key.as_id()}: {str(e)}")
        return False

#------This Function delivers a notification and records it---------
    async def _deliver(
        self,
        user_uid: str,
        kind: NotificationKind,
        title: str,
        body: str,
        data: Dict[str, Any],
        day: date,
        medication_id: str = "",
        slot: str = "",
        now: Optional[datetime] = None,
    ) -> DispatchResult:
        result = DispatchResult(outcome=DispatchOutcome.FAILED, kind=kind)

        for channel in await select_channels(user_uid, self.native, self.fallback):
            delivery: Result = await channel.deliver(user_uid, title, body, data)
            if delivery.ok:
                result.channel = channel.name
                break
            result.errors.append(f"{channel.name.value}: {delivery.describe()}")
            logger.warning(f"Channel {channel.name.value} failed for user {user_uid}: {delivery.describe()}")
        else:
            logger.error(f"All channels failed for {kind.value} notification to user {user_uid}")
            return result

        result.outcome = DispatchOutcome.DELIVERED
        record = NotificationRecord(
            user_uid=user_uid,
            medication_id=medication_id,
            calendar_day=day,
            slot=slot,
            kind=kind,
            title=title,
            body=body,
            channel=result.channel,
            created_at=now or datetime.now(),
            data=data,
        )
        if record.deduplicated:
            self._announced.add(record.key)

        stored = await self.log.append(record)
        if stored.ok:
            result.record_id = record.id
        else:
            result.errors.append(f"log: {stored.describe()}")
            logger.error(f"Notification shown but not stored for user {user_uid}: {stored.describe()}")
        return result

#------This Function dispatches a dose reminder or missed dose alert---------
    async def dispatch(
        self,
        user_uid: str,
        medication: Medication,
        event: DoseEvent,
        kind: NotificationKind,
        now: datetime,
    ) -> DispatchResult:
        self.forget_before(now.date())
        key = NotificationKey(user_uid, medication.id, event.dose_day, event.slot, kind)
        if await self._already_announced(key):
            logger.debug(f"Suppressing duplicate {kind.value} for {medication.name} at {event.slot}")
            result = DispatchResult(outcome=DispatchOutcome.SUPPRESSED, kind=kind)
        else:
            title, body = compose_dose_message(medication, event, kind)
            data = {
                "type": kind.value,
                "medicationId": medication.id,
                "medicationName": medication.name,
                "dosage": medication.dosage,
                "scheduledTime": event.slot,
                "url": DASHBOARD_VIEW,
            }
            logger.info(f"Sending {kind.value} notification: {title}")
            result = await self._deliver(
                user_uid, kind, title, body, data, event.dose_day, medication.id, event.slot, now
            )

        # also runs for suppressed repeats; the notifier applies its own threshold
        if kind == NotificationKind.MISSED and self.caregivers and result.outcome != DispatchOutcome.FAILED:
            await self.caregivers.notify_missed(
                user_uid, medication, event.dose_day, event.slot, -event.diff
            )
        return result

#------This Function alerts the user that a medication is running low---------
    async def notify_low_stock(
        self,
        user_uid: str,
        medication: Medication,
        now: datetime,
        threshold: Optional[int] = None,
    ) -> DispatchResult:
        limit = settings.low_stock_threshold if threshold is None else threshold
        if medication.stock is None or medication.stock > limit:
            return DispatchResult(outcome=DispatchOutcome.SKIPPED, kind=NotificationKind.LOW_STOCK)

        self.forget_before(now.date())
        key = NotificationKey(user_uid, medication.id, now.date(), "", NotificationKind.LOW_STOCK)
        if await self._already_announced(key):
            return DispatchResult(outcome=DispatchOutcome.SUPPRESSED, kind=NotificationKind.LOW_STOCK)

        title = "Low Stock Alert"
        body = f"Your {medication.name} is running low. Current stock: {medication.stock} units."
        data = {
            "type": NotificationKind.LOW_STOCK.value,
            "medicationId": medication.id,
            "medicationName": medication.name,
            "currentStock": medication.stock,
            "url": MEDICATIONS_VIEW,
        }
        result = await self._deliver(
            user_uid, NotificationKind.LOW_STOCK, title, body, data, now.date(), medication.id, now=now
        )
        if result.delivered and self.caregivers:
            await self.caregivers.notify_low_stock(user_uid, medication, now.date())
        return result

#------This Function confirms that a medication was taken---------
    async def notify_taken(self, user_uid: str, medication: Medication, now: datetime) -> DispatchResult:
        title = f"Medication Taken: {medication.name}"
        body = (
            f"You've successfully taken your {medication.dosage or 'prescribed'} dose of {medication.name}."
        )
        data = {
            "type": NotificationKind.TAKEN.value,
            "medicationId": medication.id,
            "url": DASHBOARD_VIEW,
        }
        return await self._deliver(
            user_uid, NotificationKind.TAKEN, title, body, data, now.date(), medication.id, now=now
        )

#------This Function sends a test notification---------
    async def send_test(self, user_uid: str, now: datetime) -> DispatchResult:
        return await self._deliver(
            user_uid,
            NotificationKind.TEST,
            "Test Notification",
            "This is a test notification from MedX",
            {"type": NotificationKind.TEST.value},
            now.date(),
            now=now,
        )
