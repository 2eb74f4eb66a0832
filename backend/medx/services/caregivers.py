import logging
from typing import Optional, Set, Tuple
from datetime import date
import httpx
from medx.core.config import settings
from medx.core.errors import Result
from medx.models.medication import Medication
from medx.models.profile import DearOne
from medx.services.profile_source import ProfileSource

logger = logging.getLogger(__name__)


class CaregiverNotifier:
    """Alerts a patient's dear ones when a dose is missed.

    Delivery goes to ``caregiver_webhook_url`` when one is configured and is
    only logged otherwise.
    """

    def __init__(
        self,
        profiles: ProfileSource,
        webhook_url: Optional[str] = None,
        threshold_minutes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.profiles = profiles
        self.webhook_url = settings.caregiver_webhook_url if webhook_url is None else webhook_url
        self.threshold_minutes = (
            settings.caregiver_missed_threshold_minutes if threshold_minutes is None else threshold_minutes
        )
        self._transport = transport
        self._alerted: Set[Tuple[str, str, date, str, str]] = set()

#------This Function drops alert keys for days before the cutoff---------
    def forget_before(self, cutoff: date) -> int:
        stale = {key for key in self._alerted if key[2] < cutoff}
        self._alerted -= stale
        return len(stale)

#------This Function delivers one caregiver message---------
    async def _deliver(self, dear_one: DearOne, subject: str, message: str) -> Result:
        if not self.webhook_url:
            logger.info(f"[stub] Caregiver alert for {dear_one.name} <{dear_one.email or dear_one.phone}>: {subject}")
            return Result.success(False)

        payload = {
            "to": {"name": dear_one.name, "email": dear_one.email, "phone": dear_one.phone},
            "subject": subject,
            "message": message,
        }
        try:
            async with httpx.AsyncClient(timeout=settings.caregiver_timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
            return Result.success(True)
        except httpx.HTTPError as e:
            return Result.failure(e)

#------This Function notifies dear ones about a missed dose---------
    async def notify_missed(
        self,
        user_uid: str,
        medication: Medication,
        dose_day: date,
        slot: str,
        minutes_overdue: int,
    ) -> int:
        if minutes_overdue < self.threshold_minutes:
            return 0

        try:
            dear_ones = await self.profiles.get_dear_ones(user_uid)
            patient_name = await self.profiles.get_display_name(user_uid) or "Your dear one"
        except Exception as e:
            logger.error(f"Failed to load dear ones for user {user_uid}: {str(e)}")
            return 0

        subject = f"Medication Alert: {patient_name} missed a dose"
        message = (
            f"{patient_name} has missed their scheduled dose of {medication.name}"
            f" ({medication.dosage or 'prescribed dose'}) at {slot}."
        )

        sent = 0
        for dear_one in dear_ones:
            if not dear_one.missed_dose:
                continue
            key = (user_uid, medication.id, dose_day, slot, dear_one.email or dear_one.phone or dear_one.name)
            if key in self._alerted:
                continue

            result = await self._deliver(dear_one, subject, message)
            if result.ok:
                self._alerted.add(key)
                sent += 1
            else:
                logger.error(f"Failed to alert {dear_one.name} for user {user_uid}: {result.describe()}")
        return sent

#------This Function notifies dear ones about low stock---------
    async def notify_low_stock(self, user_uid: str, medication: Medication, day: date) -> int:
        try:
            dear_ones = await self.profiles.get_dear_ones(user_uid)
            patient_name = await self.profiles.get_display_name(user_uid) or "Your dear one"
        except Exception as e:
            logger.error(f"Failed to load dear ones for user {user_uid}: {str(e)}")
            return 0

        subject = f"Low Stock Alert: {medication.name}"
        message = f"{patient_name}'s {medication.name} is running low. Current stock: {medication.stock} units."

        sent = 0
        for dear_one in dear_ones:
            if not dear_one.low_stock:
                continue
            key = (user_uid, medication.id, day, "stock", dear_one.email or dear_one.phone or dear_one.name)
            if key in self._alerted:
                continue
            result = await self._deliver(dear_one, subject, message)
            if result.ok:
                self._alerted.add(key)
                sent += 1
            else:
                logger.error(f"Failed to alert {dear_one.name} for user {user_uid}: {result.describe()}")
        return sent
