import logging
from abc import ABC, abstractmethod
from typing import Dict, List
from pymongo.errors import DuplicateKeyError
from medx.core.errors import PersistenceFailure, Result
from medx.models.notification import NotificationDocument, NotificationKey, NotificationRecord

logger = logging.getLogger(__name__)


class NotificationLog(ABC):
    """Per-user notification history, newest first."""

    @abstractmethod
    async def exists(self, key: NotificationKey) -> bool:
        ...

    @abstractmethod
    async def append(self, record: NotificationRecord) -> Result:
        """Store a record. The result value is False when the identity was already present."""

    @abstractmethod
    async def mark_read(self, user_uid: str, record_id: str) -> bool:
        ...

    @abstractmethod
    async def list_recent(self, user_uid: str, limit: int = 50) -> List[NotificationRecord]:
        ...

    @abstractmethod
    async def list_unread(self, user_uid: str, limit: int = 50) -> List[NotificationRecord]:
        ...

    @abstractmethod
    async def clear(self, user_uid: str) -> int:
        ...


class InMemoryNotificationLog(NotificationLog):

    def __init__(self):
        self._records: List[NotificationRecord] = []
        self._keys: Dict[NotificationKey, str] = {}

    async def exists(self, key: NotificationKey) -> bool:
        return key in self._keys

    async def append(self, record: NotificationRecord) -> Result:
        if record.deduplicated:
            if record.key in self._keys:
                return Result.success(False)
            self._keys[record.key] = record.id
        self._records.insert(0, record)
        return Result.success(True)

    async def mark_read(self, user_uid: str, record_id: str) -> bool:
        for index, record in enumerate(self._records):
            if record.id == record_id and record.user_uid == user_uid:
                self._records[index] = record.model_copy(update={"read": True})
                return True
        return False

    async def list_recent(self, user_uid: str, limit: int = 50) -> List[NotificationRecord]:
        return [r for r in self._records if r.user_uid == user_uid][:limit]

    async def list_unread(self, user_uid: str, limit: int = 50) -> List[NotificationRecord]:
        return [r for r in self._records if r.user_uid == user_uid and not r.read][:limit]

    async def clear(self, user_uid: str) -> int:
        kept = [r for r in self._records if r.user_uid != user_uid]
        removed = len(self._records) - len(kept)
        self._records = kept
        self._keys = {k: v for k, v in self._keys.items() if k.user_uid != user_uid}
        return removed


class DocumentNotificationLog(NotificationLog):

#------This Function checks whether a notification identity was logged---------
    async def exists(self, key: NotificationKey) -> bool:
        doc = await NotificationDocument.find_one(NotificationDocument.dedupe_key == key.as_id())
        return doc is not None

#------This Function stores a notification record---------
    async def append(self, record: NotificationRecord) -> Result:
        try:
            await NotificationDocument.from_record(record).insert()
            return Result.success(True)
        except DuplicateKeyError:
            return Result.success(False)
        except Exception as e:
            return Result.failure(PersistenceFailure(f"Failed to store notification {record.id}: {str(e)}"))

#------This Function marks a notification as read---------
    async def mark_read(self, user_uid: str, record_id: str) -> bool:
        doc = await NotificationDocument.find_one(
            NotificationDocument.record_id == record_id,
            NotificationDocument.user_uid == user_uid,
        )
        if not doc:
            return False
        doc.read = True
        await doc.save()
        return True

#------This Function lists recent notifications---------
    async def list_recent(self, user_uid: str, limit: int = 50) -> List[NotificationRecord]:
        docs = await NotificationDocument.find(
            NotificationDocument.user_uid == user_uid,
        ).sort(-NotificationDocument.created_at).limit(limit).to_list()
        return [d.to_record() for d in docs]

#------This Function lists unread notifications---------
    async def list_unread(self, user_uid: str, limit: int = 50) -> List[NotificationRecord]:
        docs = await NotificationDocument.find(
            NotificationDocument.user_uid == user_uid,
            NotificationDocument.read == False,
        ).sort(-NotificationDocument.created_at).limit(limit).to_list()
        return [d.to_record() for d in docs]

#------This Function clears the user's notifications---------
    async def clear(self, user_uid: str) -> int:
        result = await NotificationDocument.find(NotificationDocument.user_uid == user_uid).delete()
        removed = result.deleted_count if result else 0
        logger.info(f"Cleared {removed} notification(s) for user {user_uid}")
        return removed
