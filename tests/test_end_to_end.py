"""Full launch flow through LaunchHost with a mocked endpoint."""

import threading

import httpx
import pytest

from conftest import FakePlatform, RecordingTransport
from launchgate.host.app import LaunchHost
from launchgate.host.main import build_parser, load_config
from launchgate.host.simulator import SimulatedAttribution, SimulatedNotificationPlatform
from launchgate.shared.core.configuration import SystemConfig
from launchgate.shared.domain.models import GateState, LaunchState
from launchgate.shared.infrastructure.network.handshake_client import decode_payload, derive_domain
from launchgate.shared.infrastructure.signals.push_token import AuthorizationStatus

pytestmark = pytest.mark.integration


def make_config(db_path, deadline=2.0) -> SystemConfig:
    return SystemConfig(
        collection={"deadline_seconds": deadline},
        database={"db_path": str(db_path)},
    )


def make_host(bundle_id, platform, transport, config, attribution=None) -> LaunchHost:
    return LaunchHost(
        bundle_id,
        platform,
        attribution_lookup=attribution,
        config=config,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
    )


@pytest.mark.asyncio
async def test_denied_permission_scenario_redirects_and_replays(tmp_path):
    db_path = tmp_path / "launch.duckdb"
    transport = RecordingTransport(body="https://promo.example")
    continued = []

    host = make_host(
        "com.foo.bar",
        FakePlatform(status=AuthorizationStatus.DENIED),
        transport,
        make_config(db_path),
        attribution=lambda: "att-123",
    )
    async with host:
        state = await host.launch(lambda: continued.append(True))

        assert state == GateState.REDIRECTING
        assert host.surface.visible
        assert host.surface.current_address == "https://promo.example"
        assert host.store.snapshot() == LaunchState(
            first_launch_completed=True,
            saved_redirect_address="https://promo.example",
        )

    assert continued == []
    (request,) = transport.requests
    assert request.url.host == "comfoobar.top"
    assert decode_payload(request.url.params["data"]) == {
        "apns_token": "0" * 64,
        "att_token": "att-123",
        "bundle_id": "com.foo.bar",
    }

    # Next launch replays the saved address with no contact at all
    platform = FakePlatform()
    attribution = SimulatedAttribution(token="att-456")
    relaunch = make_host("com.foo.bar", platform, transport, make_config(db_path), attribution=attribution)
    async with relaunch:
        assert await relaunch.launch(lambda: continued.append(True)) == GateState.REDIRECTING
        assert relaunch.surface.current_address == "https://promo.example"

    assert len(transport.requests) == 1
    assert platform.status_checks == 0
    assert attribution.calls == 0
    assert continued == []


@pytest.mark.asyncio
async def test_token_from_platform_thread_reaches_request_and_store(tmp_path):
    transport = RecordingTransport(body="")
    platform = FakePlatform(status=AuthorizationStatus.AUTHORIZED)
    host = make_host("com.example.App", platform, transport, make_config(tmp_path / "s.duckdb"))

    def deliver():
        threading.Timer(0.02, host.did_register_for_remote_notifications, args=(bytes([0xAB, 0x01]),)).start()

    platform.on_register = deliver
    continued = []

    async with host:
        state = await host.launch(lambda: continued.append(True))
        await host.event_bus.wait_until_idle()

        assert state == GateState.CONTINUING
        assert continued == [True]
        assert host.store.saved_push_token == "ab01"
        assert host.store.saved_redirect_address is None

    (request,) = transport.requests
    # httpx lowercases hosts; the case-preserving derivation is covered in test_handshake_client
    assert request.url.host == derive_domain("com.example.App").lower()
    assert decode_payload(request.url.params["data"])["apns_token"] == "ab01"


@pytest.mark.asyncio
async def test_server_error_continues_and_never_retries(tmp_path):
    transport = RecordingTransport(status_code=503, body="down")
    db_path = tmp_path / "s.duckdb"
    continued = []

    async with make_host("com.a.b", FakePlatform(status=AuthorizationStatus.DENIED), transport, make_config(db_path)) as host:
        assert await host.launch(lambda: continued.append(1)) == GateState.CONTINUING

    async with make_host("com.a.b", FakePlatform(status=AuthorizationStatus.DENIED), transport, make_config(db_path)) as host:
        assert await host.launch(lambda: continued.append(2)) == GateState.CONTINUING

    assert continued == [1, 2]
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_simulated_platform_delivers_token(tmp_path):
    transport = RecordingTransport(body="landing.example")
    platform = SimulatedNotificationPlatform(
        status=AuthorizationStatus.NOT_DETERMINED,
        token_delay=0.02,
        device_token=bytes.fromhex("00ff"),
    )
    host = make_host("com.sim.app", platform, transport, make_config(tmp_path / "sim.duckdb"))
    platform.attach(host.did_register_for_remote_notifications)

    try:
        async with host:
            assert await host.launch() == GateState.REDIRECTING
            assert host.gate.redirect_address == "https://landing.example"
    finally:
        platform.cancel()

    assert platform.registrations == 1
    assert decode_payload(transport.requests[0].url.params["data"])["apns_token"] == "00ff"


def test_cli_overrides_apply(tmp_path, monkeypatch):
    monkeypatch.delenv("LAUNCHGATE_DEADLINE_SECONDS", raising=False)
    args = build_parser().parse_args([
        "--bundle-id", "com.foo.bar",
        "--config-dir", str(tmp_path),
        "--env-file", str(tmp_path / "missing.env"),
        "--db", str(tmp_path / "cli.duckdb"),
        "--deadline", "3",
    ])
    config = load_config(args)
    assert config.database.db_path == str(tmp_path / "cli.duckdb")
    assert config.collection.deadline_seconds == 3.0
