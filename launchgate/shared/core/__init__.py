"""
Shared Core Module
==================

Event system, configuration, error taxonomy and exit hooks.
"""

# Event System
from .event_bus import EventBus, EventPayload, Subscription
from . import events

# Errors
from .errors import (
    LaunchGateError,
    PermissionDenied,
    SourceTimeout,
    LookupFailure,
    TransportFailure,
    MalformedResponse,
    RegistrationFailed,
)

# Service Infrastructure
from .service_registry import register_cleanup_handler, unregister_cleanup_handler

# Configuration
from .configuration import (
    FALLBACK_PUSH_TOKEN,
    CollectionConfig,
    ConfigManager,
    DatabaseConfig,
    GateConfig,
    HandshakeConfig,
    LoggingConfig,
    SystemConfig,
    ValidationLevel,
    get_config,
    get_config_manager,
)

__all__ = [
    # Event System
    "EventBus",
    "EventPayload",
    "Subscription",
    "events",
    # Errors
    "LaunchGateError",
    "PermissionDenied",
    "SourceTimeout",
    "LookupFailure",
    "TransportFailure",
    "MalformedResponse",
    "RegistrationFailed",
    # Service Registry
    "register_cleanup_handler",
    "unregister_cleanup_handler",
    # Configuration
    "FALLBACK_PUSH_TOKEN",
    "CollectionConfig",
    "ConfigManager",
    "DatabaseConfig",
    "GateConfig",
    "HandshakeConfig",
    "LoggingConfig",
    "SystemConfig",
    "ValidationLevel",
    "get_config",
    "get_config_manager",
]
