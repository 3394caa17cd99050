"""launchgate package."""

from .shared.core.event_bus import EventBus
from .shared.domain.models import DeviceSignals, GateState, HandshakeOutcome, LaunchState
from .host.app import LaunchHost

__all__ = ["EventBus", "DeviceSignals", "GateState", "HandshakeOutcome", "LaunchState", "LaunchHost"]
