import asyncio

import pytest

from launchgate.host.state import SurfaceState
from launchgate.shared.core import events
from launchgate.shared.core.configuration import GateConfig, HandshakeConfig
from launchgate.shared.domain.gate.redirect_gate import RedirectGate
from launchgate.shared.domain.models import DeviceSignals, GateState, HandshakeOutcome


class FakeCoordinator:
    def __init__(self, store, error=None):
        self.store = store
        self.error = error
        self.calls = []
        self.flag_at_call = None

    async def collect(self, bundle_id, deadline=None):
        self.calls.append(bundle_id)
        self.flag_at_call = self.store.first_launch_completed
        if self.error is not None:
            raise self.error
        return DeviceSignals(bundle_identifier=bundle_id, push_token="0" * 64)


class FakeHandshake:
    def __init__(self, address=None):
        self.config = HandshakeConfig()
        self.address = address
        self.calls = []

    async def exchange(self, domain, signals):
        self.calls.append((domain, signals))
        return HandshakeOutcome(redirect_address=self.address)


class Continuation:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def build_gate(store, address=None, config=None, coordinator_error=None, event_bus=None):
    coordinator = FakeCoordinator(store, coordinator_error)
    handshake = FakeHandshake(address)
    surface = SurfaceState()
    gate = RedirectGate(store, coordinator, handshake, surface, config=config, event_bus=event_bus)
    return gate, coordinator, handshake, surface


@pytest.mark.asyncio
async def test_first_launch_redirect_persists_and_activates(store):
    gate, coordinator, handshake, surface = build_gate(store, address="https://promo.example")
    on_continue = Continuation()

    state = await gate.run("com.example.App", on_continue)

    assert state == GateState.REDIRECTING
    assert gate.history == [
        GateState.NOT_LAUNCHED_BEFORE,
        GateState.FIRST_LAUNCH_PROCESSING,
        GateState.REDIRECTING,
    ]
    assert handshake.calls[0][0] == "comexampleApp.top"
    assert store.first_launch_completed is True
    assert store.saved_redirect_address == "https://promo.example"
    assert surface.visible and surface.current_address == "https://promo.example"
    assert on_continue.calls == 0


@pytest.mark.asyncio
async def test_flag_is_set_before_collection(store):
    gate, coordinator, _, _ = build_gate(store)
    await gate.run("com.example.App", Continuation())
    assert coordinator.flag_at_call is True


@pytest.mark.asyncio
async def test_first_launch_without_address_continues(store):
    gate, _, _, surface = build_gate(store, address=None)
    on_continue = Continuation()

    state = await gate.run("com.example.App", on_continue)

    assert state == GateState.CONTINUING
    assert on_continue.calls == 1
    assert store.first_launch_completed is True
    assert store.saved_redirect_address is None
    assert not surface.visible


@pytest.mark.asyncio
async def test_replay_saved_address_without_recontact(store):
    store.mark_first_launch_completed()
    store.save_redirect_address("https://saved.example/path?q=1")
    gate, coordinator, handshake, surface = build_gate(store, address="https://other.example")
    on_continue = Continuation()

    state = await gate.run("com.example.App", on_continue)

    assert state == GateState.REDIRECTING
    assert gate.history == [GateState.REPLAYING_SAVED_STATE, GateState.REDIRECTING]
    assert coordinator.calls == []
    assert handshake.calls == []
    assert surface.current_address == "https://saved.example/path?q=1"
    assert on_continue.calls == 0


@pytest.mark.asyncio
async def test_replay_without_saved_address_continues(store):
    store.mark_first_launch_completed()
    gate, coordinator, handshake, _ = build_gate(store, address="https://other.example")
    on_continue = Continuation()

    assert await gate.run("com.example.App", on_continue) == GateState.CONTINUING
    assert on_continue.calls == 1
    assert coordinator.calls == [] and handshake.calls == []


@pytest.mark.asyncio
async def test_replay_disabled_by_config(store):
    store.mark_first_launch_completed()
    store.save_redirect_address("https://saved.example")
    gate, _, _, surface = build_gate(store, config=GateConfig(replay_saved_address=False))

    assert await gate.run("com.example.App", Continuation()) == GateState.CONTINUING
    assert not surface.visible


@pytest.mark.asyncio
async def test_continue_after_redirect(store):
    gate, _, _, surface = build_gate(
        store,
        address="https://promo.example",
        config=GateConfig(continue_after_redirect=True),
    )
    on_continue = Continuation()

    assert await gate.run("com.example.App", on_continue) == GateState.REDIRECTING
    assert surface.visible
    assert on_continue.calls == 1


@pytest.mark.asyncio
async def test_unexpected_failure_degrades_to_continue(store):
    gate, coordinator, handshake, _ = build_gate(store, coordinator_error=RuntimeError("boom"))
    on_continue = Continuation()

    assert await gate.run("com.example.App", on_continue) == GateState.CONTINUING
    assert on_continue.calls == 1
    assert handshake.calls == []
    assert store.first_launch_completed is True


@pytest.mark.asyncio
async def test_second_run_is_a_no_op(store):
    gate, coordinator, _, _ = build_gate(store)
    on_continue = Continuation()

    await gate.run("com.example.App", on_continue)
    assert await gate.run("com.example.App", on_continue) == GateState.CONTINUING
    assert on_continue.calls == 1
    assert len(coordinator.calls) == 1


@pytest.mark.asyncio
async def test_async_continuation_is_awaited(store):
    store.mark_first_launch_completed()
    gate, _, _, _ = build_gate(store)
    called = []

    async def on_continue():
        called.append(True)

    await gate.run("com.example.App", on_continue)
    assert called == [True]


@pytest.mark.asyncio
async def test_state_changes_are_published(store, event_bus):
    received = []

    async def on_state(payload):
        received.append(payload)

    await event_bus.subscribe(events.TOPIC_GATE_STATE_CHANGED, on_state)
    gate, _, _, _ = build_gate(store, address="https://promo.example", event_bus=event_bus)

    await gate.run("com.example.App", Continuation())
    await event_bus.wait_until_idle()

    assert [p["state"] for p in received] == [
        "not_launched_before",
        "first_launch_processing",
        "redirecting",
    ]
    assert received[-1]["address"] == "https://promo.example"
    assert received[-1]["previous"] == "first_launch_processing"


class SlowCoordinator(FakeCoordinator):
    async def collect(self, bundle_id, deadline=None):
        await asyncio.sleep(0.05)
        return await super().collect(bundle_id, deadline)


@pytest.mark.asyncio
async def test_overlapping_runs_share_the_first_outcome(store):
    coordinator = SlowCoordinator(store)
    handshake = FakeHandshake()
    gate = RedirectGate(store, coordinator, handshake, SurfaceState())
    first, second = Continuation(), Continuation()

    states = await asyncio.gather(
        gate.run("com.example.App", first),
        gate.run("com.example.App", second),
    )

    assert states == [GateState.CONTINUING, GateState.CONTINUING]
    assert gate.history == [
        GateState.NOT_LAUNCHED_BEFORE,
        GateState.FIRST_LAUNCH_PROCESSING,
        GateState.CONTINUING,
    ]
    assert first.calls == 1
    assert second.calls == 0
    assert len(coordinator.calls) == 1
    assert len(handshake.calls) == 1


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_the_run(store):
    coordinator = SlowCoordinator(store)
    gate = RedirectGate(store, coordinator, FakeHandshake(), SurfaceState())
    on_continue = Continuation()

    caller = asyncio.create_task(gate.run("com.example.App", on_continue))
    await asyncio.sleep(0.01)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    assert await gate.run("com.example.App", Continuation()) == GateState.CONTINUING
    assert on_continue.calls == 1
