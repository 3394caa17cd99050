"""Presentation surface state.

Host-side stand-in for the full-screen content view: tracks whether it is
shown and which address it loads, and broadcasts activation on the bus.
"""

from __future__ import annotations

import logging
from typing import Optional

from launchgate.shared.core import events
from launchgate.shared.core.event_bus import EventBus

logger = logging.getLogger(__name__)


class SurfaceState:
    """Reactive state for the redirect surface."""

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self.bus = event_bus
        self.visible: bool = False
        self.current_address: Optional[str] = None
        self.activations: int = 0

    async def activate(self, address: str) -> None:
        """Show the surface loading ``address``."""
        self.current_address = address
        self.visible = True
        self.activations += 1
        logger.info("Redirect surface activated")
        if self.bus is not None:
            await self.bus.publish(events.TOPIC_SURFACE_ACTIVATED, events.create_surface_activated_event(address))
