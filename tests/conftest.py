"""Shared fixtures and fakes for the launchgate test suite."""

from typing import Callable, List, Optional

import httpx
import pytest
import pytest_asyncio

from launchgate.shared.core.configuration import CollectionConfig, HandshakeConfig
from launchgate.shared.core.event_bus import EventBus
from launchgate.shared.infrastructure.network.handshake_client import HandshakeClient
from launchgate.shared.infrastructure.persistence.launch_state_store import LaunchStateStore
from launchgate.shared.infrastructure.signals.push_token import AuthorizationStatus


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "integration: Tests that wire the whole launch flow")


class FakePlatform:
    """Notification platform double with scripted answers."""

    def __init__(
        self,
        status: AuthorizationStatus = AuthorizationStatus.AUTHORIZED,
        grant: bool = True,
        on_register: Optional[Callable[[], None]] = None,
        fail_status: bool = False,
    ):
        self.status = status
        self.grant = grant
        self.on_register = on_register
        self.fail_status = fail_status
        self.status_checks = 0
        self.requests = 0
        self.registrations = 0

    async def authorization_status(self) -> AuthorizationStatus:
        self.status_checks += 1
        if self.fail_status:
            raise OSError("notification center unavailable")
        return self.status

    async def request_authorization(self) -> bool:
        self.requests += 1
        return self.grant

    def register_for_remote_notifications(self) -> None:
        self.registrations += 1
        if self.on_register is not None:
            self.on_register()


class RecordingTransport:
    """Callable for httpx.MockTransport that records requests and replies from a script."""

    def __init__(self, body: str = "", status_code: int = 200, error: Optional[Exception] = None):
        self.body = body
        self.status_code = status_code
        self.error = error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.body)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def fake_platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def collection_config() -> CollectionConfig:
    return CollectionConfig(deadline_seconds=0.2)


@pytest.fixture
def store():
    state_store = LaunchStateStore(":memory:")
    state_store.open()
    yield state_store
    state_store.close()


@pytest_asyncio.fixture
async def bus_store(event_bus):
    """Store subscribed to relayed push tokens."""
    state_store = LaunchStateStore(":memory:", event_bus)
    await state_store.start()
    yield state_store
    await state_store.aclose()


@pytest.fixture
def make_handshake():
    def factory(transport: RecordingTransport, config: Optional[HandshakeConfig] = None) -> HandshakeClient:
        return HandshakeClient(
            config or HandshakeConfig(),
            client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
        )

    return factory
