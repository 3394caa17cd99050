"""Redirect gate state machine.

First launch: mark the launch as done, collect signals, run the handshake,
then either persist + activate the surface or hand control back to the host.
Later launches replay whatever the first one decided.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Union

from launchgate.shared.core import events
from launchgate.shared.core.configuration import GateConfig
from launchgate.shared.core.event_bus import EventBus
from launchgate.shared.domain.collection.deadline_join import DeadlineJoinCoordinator, normalize_bundle_id
from launchgate.shared.domain.models import GateState, HandshakeOutcome
from launchgate.shared.infrastructure.network.handshake_client import HandshakeClient, derive_domain
from launchgate.shared.infrastructure.persistence.launch_state_store import LaunchStateStore

logger = logging.getLogger(__name__)

HostContinuation = Callable[[], Union[None, Awaitable[None]]]


class PresentationSurface(Protocol):
    """Full-screen content surface owned by the host."""

    def activate(self, address: str) -> Union[None, Awaitable[None]]: ...


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


async def _invoke(on_continue: Optional[HostContinuation]) -> None:
    if on_continue is not None:
        await _maybe_await(on_continue())


class RedirectGate:
    """Decides, once per launch, between redirecting and continuing."""

    def __init__(
        self,
        store: LaunchStateStore,
        coordinator: DeadlineJoinCoordinator,
        handshake: HandshakeClient,
        surface: PresentationSurface,
        config: Optional[GateConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.store = store
        self.coordinator = coordinator
        self.handshake = handshake
        self.surface = surface
        self.config = config or GateConfig()
        self.event_bus = event_bus

        self.state: Optional[GateState] = None
        self.history: List[GateState] = []
        self.redirect_address: Optional[str] = None
        self._run_task: Optional[asyncio.Task] = None

    async def run(self, bundle_id: Any, on_continue: Optional[HostContinuation] = None) -> GateState:
        """Drive the gate to a terminal state and return it.

        A gate runs once. Later or overlapping calls await that first run and
        return its terminal state; only the first caller's continuation is
        ever invoked.
        """
        if self._run_task is None:
            self._run_task = asyncio.create_task(
                self._drive(bundle_id, on_continue), name="launchgate-gate"
            )
        elif not self._run_task.done():
            logger.info("Gate already running; waiting for its outcome")
        # A cancelled caller must not abort the shared run
        return await asyncio.shield(self._run_task)

    async def _drive(self, bundle_id: Any, on_continue: Optional[HostContinuation]) -> GateState:
        try:
            first_launch_done = self.store.first_launch_completed
        except Exception:
            logger.exception("Could not read launch state; continuing normal flow")
            await self._finish_continuing(on_continue)
            return self.state

        if first_launch_done:
            await self._replay_saved_state(on_continue)
        else:
            await self._enter(GateState.NOT_LAUNCHED_BEFORE)
            await self._process_first_launch(normalize_bundle_id(bundle_id), on_continue)
        return self.state

    async def _process_first_launch(self, bundle_id: str, on_continue: Optional[HostContinuation]) -> None:
        await self._enter(GateState.FIRST_LAUNCH_PROCESSING)
        try:
            # Set before any contact so a crash mid-collection never repeats it
            self.store.mark_first_launch_completed()
            domain = derive_domain(bundle_id, self.handshake.config.domain_suffix)
            signals = await self.coordinator.collect(bundle_id)
            outcome = await self.handshake.exchange(domain, signals)
        except Exception:
            logger.exception("First launch processing failed; continuing normal flow")
            outcome = HandshakeOutcome.proceed()

        if not outcome.should_redirect:
            await self._finish_continuing(on_continue)
            return

        address = outcome.redirect_address
        try:
            self.store.save_redirect_address(address)
        except Exception:
            logger.exception("Could not persist redirect address")
        await self._finish_redirecting(address, on_continue)

    async def _replay_saved_state(self, on_continue: Optional[HostContinuation]) -> None:
        await self._enter(GateState.REPLAYING_SAVED_STATE)
        address = None
        if self.config.replay_saved_address:
            try:
                address = self.store.saved_redirect_address
            except Exception:
                logger.exception("Could not read saved redirect address")

        if address:
            await self._finish_redirecting(address, on_continue)
        else:
            await self._finish_continuing(on_continue)

    async def _finish_redirecting(self, address: str, on_continue: Optional[HostContinuation]) -> None:
        self.redirect_address = address
        await self._enter(GateState.REDIRECTING, address=address)
        try:
            await _maybe_await(self.surface.activate(address))
        except Exception:
            logger.exception("Presentation surface failed to activate; continuing normal flow")
            await _invoke(on_continue)
            return

        if self.config.continue_after_redirect:
            await _invoke(on_continue)

    async def _finish_continuing(self, on_continue: Optional[HostContinuation]) -> None:
        await self._enter(GateState.CONTINUING)
        await _invoke(on_continue)

    async def _enter(self, state: GateState, address: Optional[str] = None) -> None:
        previous = self.state
        self.state = state
        self.history.append(state)
        logger.info(f"Gate state: {previous.value if previous else 'start'} -> {state.value}")

        if self.event_bus is not None:
            await self.event_bus.publish(
                events.TOPIC_GATE_STATE_CHANGED,
                events.create_gate_state_changed_event(
                    state.value,
                    previous=previous.value if previous else None,
                    address=address,
                ),
            )
