"""
Shared Infrastructure Module
=============================

Technical adapters for external systems (DuckDB state, handshake endpoint,
device signal sources).
"""

# Persistence
from launchgate.shared.infrastructure.persistence.launch_state_store import LaunchStateStore

# Network
from launchgate.shared.infrastructure.network.handshake_client import (
    HandshakeClient,
    derive_domain,
    ensure_scheme,
)

# Signals
from launchgate.shared.infrastructure.signals.attribution import AttributionSource
from launchgate.shared.infrastructure.signals.push_token import (
    AuthorizationStatus,
    NotificationPlatform,
    PushTokenSource,
    format_device_token,
)

__all__ = [
    # Persistence
    "LaunchStateStore",
    # Network
    "HandshakeClient",
    "derive_domain",
    "ensure_scheme",
    # Signals
    "AttributionSource",
    "AuthorizationStatus",
    "NotificationPlatform",
    "PushTokenSource",
    "format_device_token",
]
