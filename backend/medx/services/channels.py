import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional
from datetime import datetime
from firebase_admin import messaging
from medx.core.config import settings
from medx.core.errors import PermissionUnavailable, Result
from medx.core.firebase import is_firebase_ready
from medx.models.notification import ChannelName

logger = logging.getLogger(__name__)


TokenLookup = Callable[[str], Awaitable[List[str]]]
TokenPruner = Callable[[str, List[str]], Awaitable[None]]


class NativeSurface(ABC):

    @abstractmethod
    async def request_permission(self, user_uid: str) -> bool:
        ...

    @abstractmethod
    async def show(self, user_uid: str, title: str, body: str, data: Dict[str, Any]) -> Result:
        ...


class PushSurface(NativeSurface):
    """Firebase Cloud Messaging delivery to every device the user registered."""

    def __init__(self, token_lookup: TokenLookup, token_pruner: Optional[TokenPruner] = None):
        self._token_lookup = token_lookup
        self._token_pruner = token_pruner

#------This Function checks push permission---------
    async def request_permission(self, user_uid: str) -> bool:
        if not is_firebase_ready():
            return False
        try:
            tokens = await self._token_lookup(user_uid)
        except Exception as e:
            logger.error(f"Failed to look up device tokens for {user_uid}: {str(e)}")
            return False
        return bool(tokens)

#------This Function sends one push message---------
    def _send(self, token: str, title: str, body: str, data: Dict[str, str]) -> bool:
        try:
            message = messaging.Message(
                notification=messaging.Notification(
                    title=title,
                    body=body,
                ),
                data=data,
                token=token,
                android=messaging.AndroidConfig(
                    priority="high",
                    notification=messaging.AndroidNotification(
                        sound="default",
                        priority="high",
                    ),
                ),
                apns=messaging.APNSConfig(
                    payload=messaging.APNSPayload(
                        aps=messaging.Aps(
                            sound="default",
                        ),
                    ),
                ),
            )
            messaging.send(message)
            return True
        except messaging.UnregisteredError:
            logger.warning(f"Token {token[:10]}... is invalid or expired")
            return False

#------This Function shows the notification on every device---------
    async def show(self, user_uid: str, title: str, body: str, data: Dict[str, Any]) -> Result:
        try:
            tokens = await self._token_lookup(user_uid)
            if not tokens:
                return Result.failure(PermissionUnavailable(f"No device tokens for user {user_uid}"))

            payload = {k: str(v) for k, v in data.items()}
            invalid_tokens = [token for token in tokens if not self._send(token, title, body, payload)]
        except Exception as e:
            return Result.failure(e)

        if invalid_tokens and self._token_pruner:
            try:
                await self._token_pruner(user_uid, invalid_tokens)
                logger.info(f"Removed {len(invalid_tokens)} invalid token(s) from user {user_uid}")
            except Exception as e:
                logger.error(f"Failed to cleanup invalid tokens: {str(e)}")

        delivered = len(tokens) - len(invalid_tokens)
        if delivered == 0:
            return Result.failure(PermissionUnavailable("All device tokens are invalid"))
        return Result.success(delivered)


class ToastSurface:
    """Per-user buffer of in-app messages, drained by the UI."""

    def __init__(self, max_size: Optional[int] = None):
        self._max_size = max_size or settings.toast_buffer_size
        self._queues: Dict[str, Deque[Dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=self._max_size)
        )

    def push(self, user_uid: str, title: str, body: str, data: Dict[str, Any]) -> None:
        self._queues[user_uid].append(
            {
                "title": title,
                "description": body,
                "data": dict(data),
                "created_at": datetime.now().isoformat(),
            }
        )

    def pending(self, user_uid: str) -> List[Dict[str, Any]]:
        return list(self._queues.get(user_uid, ()))

    def drain(self, user_uid: str) -> List[Dict[str, Any]]:
        queue = self._queues.pop(user_uid, None)
        return list(queue) if queue else []


class NotificationChannel(ABC):
    name: ChannelName

    @abstractmethod
    async def deliver(self, user_uid: str, title: str, body: str, data: Dict[str, Any]) -> Result:
        ...


class NativeChannel(NotificationChannel):
    name = ChannelName.NATIVE

    def __init__(self, surface: NativeSurface):
        self.surface = surface

    async def probe(self, user_uid: str) -> bool:
        try:
            return await self.surface.request_permission(user_uid)
        except Exception as e:
            logger.warning(f"Notification permission check failed for {user_uid}: {str(e)}")
            return False

    async def deliver(self, user_uid: str, title: str, body: str, data: Dict[str, Any]) -> Result:
        try:
            return await self.surface.show(user_uid, title, body, data)
        except Exception as e:
            return Result.failure(e)


class FallbackChannel(NotificationChannel):
    name = ChannelName.TOAST

    def __init__(self, surface: ToastSurface):
        self.surface = surface

    async def deliver(self, user_uid: str, title: str, body: str, data: Dict[str, Any]) -> Result:
        try:
            self.surface.push(user_uid, title, body, data)
            return Result.success(1)
        except Exception as e:
            return Result.failure(e)


#------This Function picks the delivery order for one dispatch---------
async def select_channels(
    user_uid: str,
    native: Optional[NativeChannel],
    fallback: FallbackChannel,
) -> List[NotificationChannel]:
    if native is not None and await native.probe(user_uid):
        return [native, fallback]
    return [fallback]
