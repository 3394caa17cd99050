"""Device signal sources (push token, install attribution)."""

from launchgate.shared.infrastructure.signals.attribution import AttributionLookup, AttributionSource
from launchgate.shared.infrastructure.signals.push_token import (
    AuthorizationStatus,
    NotificationPlatform,
    PushTokenSource,
    format_device_token,
)

__all__ = [
    "AttributionLookup",
    "AttributionSource",
    "AuthorizationStatus",
    "NotificationPlatform",
    "PushTokenSource",
    "format_device_token",
]
