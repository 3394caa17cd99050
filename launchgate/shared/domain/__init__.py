"""
Shared Domain Module
====================

Launch handshake business logic.

Structure:
- models: DeviceSignals, LaunchState, HandshakeOutcome, GateState
- collection: deadline-bounded signal collection (JoinSession, DeadlineJoinCoordinator)
- gate: redirect gate state machine
"""

from launchgate.shared.domain.models import DeviceSignals, GateState, HandshakeOutcome, LaunchState

__all__ = [
    "DeviceSignals",
    "GateState",
    "HandshakeOutcome",
    "LaunchState",
]
