"""Push-token source.

Wraps the host's notification platform (permission status, permission prompt,
remote registration) and the process-wide "token received" event.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from launchgate.shared.core import events
from launchgate.shared.core.errors import PermissionDenied
from launchgate.shared.core.event_bus import EventBus, EventHandler, Subscription

logger = logging.getLogger(__name__)


class AuthorizationStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    AUTHORIZED = "authorized"
    PROVISIONAL = "provisional"


class NotificationPlatform(Protocol):
    """What the host platform has to provide for push registration."""

    async def authorization_status(self) -> AuthorizationStatus: ...

    async def request_authorization(self) -> bool: ...

    def register_for_remote_notifications(self) -> None: ...


def format_device_token(device_token: bytes) -> str:
    """Render raw device token bytes as lowercase hex."""
    return device_token.hex()


class PushTokenSource:
    """Permission, registration and token-arrival subscription for one platform."""

    def __init__(self, platform: NotificationPlatform, event_bus: EventBus):
        self.platform = platform
        self.event_bus = event_bus

    async def require_permission(self) -> None:
        """Make sure notifications are permitted, prompting when undetermined.

        Raises:
            PermissionDenied: If permission is refused or the platform errors
        """
        try:
            status = await self.platform.authorization_status()
        except Exception as e:
            raise PermissionDenied(f"could not read notification settings: {e}") from e

        if status in (AuthorizationStatus.AUTHORIZED, AuthorizationStatus.PROVISIONAL):
            return
        if status == AuthorizationStatus.DENIED:
            raise PermissionDenied("notification permission denied")

        try:
            granted = await self.platform.request_authorization()
        except Exception as e:
            raise PermissionDenied(f"permission request failed: {e}") from e
        if not granted:
            raise PermissionDenied("notification permission refused at prompt")

    async def subscribe(self, handler: EventHandler) -> Subscription:
        """Subscribe for the token-received event."""
        return await self.event_bus.subscribe(events.TOPIC_PUSH_TOKEN_RECEIVED, handler)

    async def subscribe_failures(self, handler: EventHandler) -> Subscription:
        """Subscribe for the registration-failed event."""
        return await self.event_bus.subscribe(events.TOPIC_PUSH_REGISTRATION_FAILED, handler)

    def register(self) -> None:
        """Ask the platform to register for remote delivery; the token arrives later as an event."""
        logger.debug("Registering for remote notifications")
        self.platform.register_for_remote_notifications()
