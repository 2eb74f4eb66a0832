import logging
from enum import Enum
from typing import Any, Iterable, List, Optional
from datetime import date, time as dt_time
from pydantic import BaseModel, Field, field_validator, model_validator
from medx.core.errors import ClassificationAmbiguity, InvalidMedication
from medx.utils.datetime_parser import parse_date, parse_time_of_day

logger = logging.getLogger(__name__)


class Frequency(str, Enum):
    ONCE_DAILY = "Once daily"
    TWICE_DAILY = "Twice daily"
    THREE_TIMES_DAILY = "Three times daily"
    EVERY_OTHER_DAY = "Every other day"
    WEEKLY = "Weekly"
    AS_NEEDED = "As needed"

#------This Function resolves a frequency label---------
    @classmethod
    def parse(cls, value: Any) -> "Frequency":
        if isinstance(value, cls):
            return value
        key = "".join(str(value or "").lower().split()).replace("_", "").replace("-", "")
        for member in cls:
            if key in (
                "".join(member.value.lower().split()),
                member.name.lower().replace("_", ""),
            ):
                return member
        # unknown labels schedule like a daily medication
        logger.warning(f"Unknown frequency {value!r}, treating as once daily")
        return cls.ONCE_DAILY


class Medication(BaseModel):
    id: str
    name: str
    dosage: str = ""
    frequency: Frequency = Frequency.ONCE_DAILY
    time: dt_time
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    taken: bool = False
    instructions: str = ""
    stock: Optional[int] = None

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("frequency", mode="before")
    @classmethod
    def validate_frequency(cls, v: Any) -> Frequency:
        return Frequency.parse(v)

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v: Any) -> dt_time:
        parsed = parse_time_of_day(v)
        if parsed is None:
            raise ValueError(f"Invalid time format: {v}. Use HH:MM format.")
        return parsed

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_dates(cls, v: Any) -> Optional[date]:
        return parse_date(v)

    @field_validator("dosage", "instructions", mode="before")
    @classmethod
    def validate_text(cls, v: Any) -> str:
        return str(v).strip() if v else ""

    @model_validator(mode="after")
    def validate_window(self) -> "Medication":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate cannot be before startDate")
        return self

    @property
    def slot_label(self) -> str:
        return self.time.strftime("%H:%M")

#------This Function checks the active window---------
    def is_active_on(self, day: date) -> bool:
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True


#------This Function validates one raw medication record---------
def parse_medication(raw: Any) -> Medication:
    if isinstance(raw, Medication):
        return raw
    if not isinstance(raw, dict):
        raise InvalidMedication(f"Medication record must be a mapping, got {type(raw).__name__}")

    name = str(raw.get("name") or "").strip()
    if not name:
        raise InvalidMedication("Medication name is missing")

    raw_time = raw.get("time") or raw.get("timeOfDay")
    if not raw_time:
        raise InvalidMedication(f"Medication {name!r} has no scheduled time")
    scheduled = parse_time_of_day(raw_time)
    if scheduled is None:
        raise ClassificationAmbiguity(f"Medication {name!r} has malformed time {raw_time!r}")

    data = dict(raw)
    data.pop("timeOfDay", None)
    data["name"] = name
    data["time"] = raw_time
    # records without an id are told apart by name and dose time
    data["id"] = str(raw.get("id") or f"{name}@{scheduled.strftime('%H:%M')}")
    data["taken"] = bool(raw.get("taken", False))

    try:
        return Medication.model_validate(data)
    except ValueError as e:
        raise InvalidMedication(f"Medication {name!r} is invalid: {e}") from e


#------This Function loads the valid medications from raw records---------
def load_medications(raws: Optional[Iterable[Any]]) -> List[Medication]:
    medications: List[Medication] = []
    for raw in raws or []:
        try:
            medications.append(parse_medication(raw))
        except (InvalidMedication, ClassificationAmbiguity) as e:
            logger.warning(f"Skipping medication: {e}")
    return medications
