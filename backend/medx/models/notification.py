import uuid
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from typing import Any, Dict, NamedTuple, Optional
from datetime import date, datetime
from enum import Enum


class NotificationKind(str, Enum):
    REMINDER = "reminder"
    MISSED = "missed"
    LOW_STOCK = "low_stock"
    TAKEN = "taken"
    TEST = "test"


class ChannelName(str, Enum):
    NATIVE = "native"
    TOAST = "toast"
    NONE = "none"


class NotificationKey(NamedTuple):
    user_uid: str
    medication_id: str
    calendar_day: date
    slot: str
    kind: NotificationKind

    def as_id(self) -> str:
        return ":".join(
            [self.user_uid, self.medication_id, self.calendar_day.isoformat(), self.slot, self.kind.value]
        )


class NotificationRecord(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_uid: str
    medication_id: str = ""
    calendar_day: date
    slot: str = ""
    kind: NotificationKind
    title: str
    body: str
    channel: ChannelName = ChannelName.NONE
    read: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> NotificationKey:
        return NotificationKey(self.user_uid, self.medication_id, self.calendar_day, self.slot, self.kind)

    @property
    def deduplicated(self) -> bool:
        return self.kind not in (NotificationKind.TAKEN, NotificationKind.TEST)


class NotificationDocument(Document):
    record_id: Indexed(str, unique=True)
    user_uid: str
    medication_id: str = ""
    calendar_day: str
    slot: str = ""
    kind: str
    dedupe_key: Optional[str] = None
    title: str
    body: str
    channel: str = ChannelName.NONE.value
    read: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    data: Dict[str, Any] = Field(default_factory=dict)

    class Settings:
        name = "notifications"
        indexes = [
            IndexModel([("user_uid", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel(
                [("dedupe_key", ASCENDING)],
                unique=True,
                partialFilterExpression={"dedupe_key": {"$type": "string"}},
            ),
        ]

#------This Function builds a document from a record---------
    @classmethod
    def from_record(cls, record: NotificationRecord) -> "NotificationDocument":
        return cls(
            record_id=record.id,
            user_uid=record.user_uid,
            medication_id=record.medication_id,
            calendar_day=record.calendar_day.isoformat(),
            slot=record.slot,
            kind=record.kind.value,
            dedupe_key=record.key.as_id() if record.deduplicated else None,
            title=record.title,
            body=record.body,
            channel=record.channel.value,
            read=record.read,
            created_at=record.created_at,
            data=record.data,
        )

#------This Function converts the document back to a record---------
    def to_record(self) -> NotificationRecord:
        return NotificationRecord(
            id=self.record_id,
            user_uid=self.user_uid,
            medication_id=self.medication_id,
            calendar_day=date.fromisoformat(self.calendar_day),
            slot=self.slot,
            kind=NotificationKind(self.kind),
            title=self.title,
            body=self.body,
            channel=ChannelName(self.channel),
            read=self.read,
            created_at=self.created_at,
            data=self.data,
        )


class NotificationResponse(BaseModel):
    id: str
    title: str
    body: str
    kind: str
    channel: str
    read: bool
    medication_id: str
    created_at: str
    data: Dict[str, Any] = Field(default_factory=dict)
