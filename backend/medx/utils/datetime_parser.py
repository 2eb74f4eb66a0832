import re
from typing import Optional, Union
from datetime import date, datetime, time
import dateparser


TIME_PATTERN = re.compile(r'^\s*([01]?[0-9]|2[0-3]):([0-5][0-9])\s*$')


#------This Function parses a HH:MM time of day---------
def parse_time_of_day(value: Union[str, time, None]) -> Optional[time]:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not value or not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value)
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)))


#------This Function parses a calendar date from loose input---------
def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        pass

    settings = {
        "RETURN_AS_TIMEZONE_AWARE": False,
        "PREFER_DAY_OF_MONTH": "first",
    }

    try:
        parsed = dateparser.parse(value, settings=settings)
    except Exception:
        return None
    return parsed.date() if parsed else None


#------This Function formats minutes from midnight---------
def minutes_of_day(value: Union[time, datetime]) -> int:
    return value.hour * 60 + value.minute
