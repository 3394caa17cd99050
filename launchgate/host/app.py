"""Host application glue.

`LaunchHost` wires one store, coordinator, handshake client and gate from a
`SystemConfig` and relays the platform's push-registration callbacks onto the
event bus.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from typing import Optional

import httpx

from launchgate.shared.core import events
from launchgate.shared.core.configuration import SystemConfig
from launchgate.shared.core.event_bus import EventBus
from launchgate.shared.domain.collection.deadline_join import DeadlineJoinCoordinator
from launchgate.shared.domain.gate.redirect_gate import HostContinuation, PresentationSurface, RedirectGate
from launchgate.shared.domain.models import GateState
from launchgate.shared.infrastructure.network.handshake_client import HandshakeClient
from launchgate.shared.infrastructure.persistence.launch_state_store import LaunchStateStore
from launchgate.shared.infrastructure.signals.attribution import AttributionLookup, AttributionSource
from launchgate.shared.infrastructure.signals.push_token import (
    NotificationPlatform,
    PushTokenSource,
    format_device_token,
)
from launchgate.host.state import SurfaceState

logger = logging.getLogger(__name__)


class LaunchHost:
    """One launch of the host application."""

    def __init__(
        self,
        bundle_id: Optional[str],
        platform: NotificationPlatform,
        attribution_lookup: Optional[AttributionLookup] = None,
        config: Optional[SystemConfig] = None,
        event_bus: Optional[EventBus] = None,
        surface: Optional[PresentationSurface] = None,
        store: Optional[LaunchStateStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.bundle_id = bundle_id or ""
        self.config = config or SystemConfig()
        self.event_bus = event_bus or EventBus()
        self.surface = surface if surface is not None else SurfaceState(self.event_bus)
        self.store = store or LaunchStateStore(self.config.database.db_path, self.event_bus)

        self.push_source = PushTokenSource(platform, self.event_bus)
        self.attribution_source = AttributionSource(attribution_lookup)
        self.handshake = HandshakeClient(self.config.handshake, client=http_client)
        self.coordinator = DeadlineJoinCoordinator(
            self.push_source,
            self.attribution_source,
            store=self.store,
            config=self.config.collection,
        )
        self.gate = RedirectGate(
            self.store,
            self.coordinator,
            self.handshake,
            self.surface,
            config=self.config.gate,
            event_bus=self.event_bus,
        )
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        self.event_bus.bind_loop(asyncio.get_running_loop())
        if self.store.event_bus is None:
            self.store.event_bus = self.event_bus
        await self.store.start()
        self._started = True

    async def launch(self, on_continue: Optional[HostContinuation] = None) -> GateState:
        """Application-did-finish-launching hook."""
        await self.start()
        return await self.gate.run(self.bundle_id, on_continue)

    def did_register_for_remote_notifications(self, device_token: bytes) -> concurrent.futures.Future:
        """Platform callback with the raw device token; safe from any thread."""
        token = format_device_token(device_token)
        return self.event_bus.publish_threadsafe(
            events.TOPIC_PUSH_TOKEN_RECEIVED,
            events.create_push_token_received_event(token),
        )

    def did_fail_to_register_for_remote_notifications(self, error: BaseException) -> concurrent.futures.Future:
        logger.warning(f"Failed to register for remote notifications: {error}")
        return self.event_bus.publish_threadsafe(
            events.TOPIC_PUSH_REGISTRATION_FAILED,
            events.create_push_registration_failed_event(str(error)),
        )

    async def aclose(self) -> None:
        await self.event_bus.wait_until_idle(timeout=5.0)
        await self.handshake.aclose()
        await self.store.aclose()
        self._started = False

    async def __aenter__(self) -> "LaunchHost":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
