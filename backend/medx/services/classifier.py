import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional
from datetime import date, datetime, time, timedelta
from medx.core.config import settings
from medx.models.medication import Medication
from medx.models.notification import NotificationKind
from medx.models.preferences import NotificationPreferences
from medx.services.recurrence import expand
from medx.utils.datetime_parser import minutes_of_day

logger = logging.getLogger(__name__)


MINUTES_PER_DAY = 1440
HALF_DAY = 720


class DoseStatus(str, Enum):
    UPCOMING = "upcoming"
    DUE = "due"
    MISSED = "missed"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class DoseEvent:
    medication_id: str
    instant: time
    dose_day: date
    diff: int
    status: DoseStatus
    kinds: FrozenSet[NotificationKind] = field(default_factory=frozenset)

    @property
    def slot(self) -> str:
        return self.instant.strftime("%H:%M")

    @property
    def scheduled_at(self) -> datetime:
        return datetime.combine(self.dose_day, self.instant)


#------This Function computes minutes until a dose with day wraparound---------
def minutes_until(instant: time, now: datetime) -> int:
    diff = minutes_of_day(instant) - minutes_of_day(now)
    if diff < -HALF_DAY:
        diff += MINUTES_PER_DAY
    if diff > HALF_DAY:
        diff -= MINUTES_PER_DAY
    return diff


#------This Function resolves the calendar day a dose instant belongs to---------
def resolve_dose_day(instant: time, now: datetime) -> date:
    raw = minutes_of_day(instant) - minutes_of_day(now)
    if raw < -HALF_DAY:
        return now.date() + timedelta(days=1)
    if raw > HALF_DAY:
        return now.date() - timedelta(days=1)
    return now.date()


#------This Function classifies one dose instant---------
def classify(
    instant: time,
    now: datetime,
    reminder_timing: int,
    taken: bool = False,
    missed_window: Optional[int] = None,
) -> DoseStatus:
    if taken:
        return DoseStatus.INACTIVE

    window = settings.missed_window_minutes if missed_window is None else missed_window
    diff = minutes_until(instant, now)
    if diff == 0:
        return DoseStatus.DUE
    if 0 < diff <= reminder_timing:
        return DoseStatus.UPCOMING
    if -window <= diff < 0:
        return DoseStatus.MISSED
    return DoseStatus.INACTIVE


#------This Function decides which notifications fire for a time difference---------
def firing_kinds(
    diff: int,
    preferences: NotificationPreferences,
    missed_window: Optional[int] = None,
) -> FrozenSet[NotificationKind]:
    window = settings.missed_window_minutes if missed_window is None else missed_window
    kinds = set()
    if preferences.reminder_notifications and -window < diff <= preferences.reminder_timing:
        kinds.add(NotificationKind.REMINDER)
    if preferences.missed_dose_alerts and -window <= diff < 0:
        kinds.add(NotificationKind.MISSED)
    return frozenset(kinds)


#------This Function evaluates every dose of a medication around now---------
def dose_events(
    medication: Medication,
    now: datetime,
    preferences: NotificationPreferences,
    missed_window: Optional[int] = None,
) -> List[DoseEvent]:
    if medication.taken:
        logger.debug(f"Medication {medication.name} already taken today, skipping")
        return []

    events: List[DoseEvent] = []
    seen = set()
    today = now.date()
    for offset in (-1, 0, 1):
        day = today + timedelta(days=offset)
        for instant in expand(medication, day):
            if resolve_dose_day(instant, now) != day or (day, instant) in seen:
                continue
            seen.add((day, instant))

            diff = minutes_until(instant, now)
            events.append(
                DoseEvent(
                    medication_id=medication.id,
                    instant=instant,
                    dose_day=day,
                    diff=diff,
                    status=classify(
                        instant, now, preferences.reminder_timing, missed_window=missed_window
                    ),
                    kinds=firing_kinds(diff, preferences, missed_window),
                )
            )

    events.sort(key=lambda e: e.diff)
    return events
