import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional
from medx.core.errors import PermissionUnavailable, PersistenceFailure, Result
from medx.models.medication import parse_medication
from medx.models.notification import NotificationKey, NotificationRecord
from medx.services.channels import FallbackChannel, NativeChannel, NativeSurface, ToastSurface
from medx.services.dispatcher import NotificationDispatcher
from medx.services.notification_log import InMemoryNotificationLog


def _run(coro):
    return asyncio.run(coro)


def med(**fields):
    data = {"id": fields.pop("id", fields.get("name", "med")), "name": "Aspirin", "time": "08:00"}
    data.update(fields)
    return parse_medication(data)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSurface(NativeSurface):
    def __init__(self, granted: bool = True, fail: bool = False):
        self.granted = granted
        self.fail = fail
        self.shown: List[Dict[str, Any]] = []

    async def request_permission(self, user_uid: str) -> bool:
        return self.granted

    async def show(self, user_uid: str, title: str, body: str, data: Dict[str, Any]) -> Result:
        if self.fail:
            return Result.failure(PermissionUnavailable("device rejected the message"))
        self.shown.append({"user_uid": user_uid, "title": title, "body": body, "data": data})
        return Result.success(1)


class BrokenLog(InMemoryNotificationLog):
    """Log whose writes and lookups always fail."""

    async def exists(self, key: NotificationKey) -> bool:
        raise ConnectionError("store offline")

    async def append(self, record: NotificationRecord) -> Result:
        return Result.failure(PersistenceFailure("store offline"))


def make_dispatcher(granted: bool = True, fail: bool = False, log=None, caregivers=None):
    surface = FakeSurface(granted=granted, fail=fail)
    toasts = ToastSurface(max_size=10)
    log = log if log is not None else InMemoryNotificationLog()
    dispatcher = NotificationDispatcher(
        log=log,
        fallback=FallbackChannel(toasts),
        native=NativeChannel(surface),
        caregivers=caregivers,
    )
    return dispatcher, surface, toasts, log
