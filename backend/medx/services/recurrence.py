import logging
from typing import Iterator, List, Optional
from datetime import date, datetime, time, timedelta
from medx.core.config import settings
from medx.models.medication import Frequency, Medication

logger = logging.getLogger(__name__)


# hour offsets of each dose within a day, relative to the medication time
DAILY_OFFSETS = {
    Frequency.ONCE_DAILY: (0,),
    Frequency.TWICE_DAILY: (0, 12),
    Frequency.THREE_TIMES_DAILY: (0, 8, 16),
    Frequency.EVERY_OTHER_DAY: (0,),
    Frequency.WEEKLY: (0,),
    Frequency.AS_NEEDED: (),
}


#------This Function shifts a time of day by whole hours---------
def _shift(anchor: time, hours: int) -> time:
    return time((anchor.hour + hours) % 24, anchor.minute)


#------This Function checks whether the medication has a dose on a day---------
def _is_dose_day(medication: Medication, reference_date: date) -> bool:
    if medication.frequency == Frequency.AS_NEEDED:
        return False
    if not medication.is_active_on(reference_date):
        return False

    anchor = medication.start_date or reference_date
    if medication.frequency == Frequency.EVERY_OTHER_DAY:
        return (reference_date - anchor).days % 2 == 0
    if medication.frequency == Frequency.WEEKLY:
        return reference_date.weekday() == anchor.weekday()
    return True


#------This Function expands the dose instants for one day---------
def expand(medication: Medication, reference_date: date) -> List[time]:
    if not _is_dose_day(medication, reference_date):
        return []
    return [_shift(medication.time, hours) for hours in DAILY_OFFSETS[medication.frequency]]


#------This Function expands dose datetimes over a bounded horizon---------
def expand_range(
    medication: Medication,
    start: date,
    days: Optional[int] = None,
) -> Iterator[datetime]:
    horizon = days if days is not None else settings.schedule_horizon_days
    last = start + timedelta(days=horizon - 1)
    if medication.end_date and medication.end_date < last:
        last = medication.end_date

    day = max(start, medication.start_date) if medication.start_date else start
    while day <= last:
        for instant in sorted(expand(medication, day)):
            yield datetime.combine(day, instant)
        day += timedelta(days=1)


#------This Function finds the next dose at or after now---------
def next_dose(medication: Medication, now: datetime, days: Optional[int] = None) -> Optional[datetime]:
    current = now.replace(second=0, microsecond=0)
    for dose_at in expand_range(medication, now.date(), days):
        if dose_at >= current:
            return dose_at
    return None
