"""Canonical event definitions for launchgate."""

from __future__ import annotations

from .event_bus import EventPayload

# Platform relay
TOPIC_PUSH_TOKEN_RECEIVED = "push.token.received"
TOPIC_PUSH_REGISTRATION_FAILED = "push.registration.failed"

# Gate lifecycle
TOPIC_GATE_STATE_CHANGED = "gate.state.changed"
TOPIC_SURFACE_ACTIVATED = "surface.activated"


def create_push_token_received_event(token: str) -> EventPayload:
    """Create a push token event (hex device token delivered by the platform)."""
    return {
        "token": token,
    }


def create_push_registration_failed_event(error: str) -> EventPayload:
    return {
        "error": error,
    }


def create_gate_state_changed_event(
    state: str,
    previous: str | None = None,
    address: str | None = None,
) -> EventPayload:
    """Create a gate state transition event.

    Args:
        state: New gate state value
        previous: State the gate left, if any
        address: Redirect address when entering the redirecting state
    """
    event: EventPayload = {
        "state": state,
        "previous": previous,
    }
    if address is not None:
        event["address"] = address
    return event


def create_surface_activated_event(address: str) -> EventPayload:
    return {
        "address": address,
    }
