"""Scripted platform collaborators for local runs of the launch flow."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import Callable, List, Optional

from launchgate.shared.infrastructure.signals.push_token import AuthorizationStatus

logger = logging.getLogger(__name__)

TokenCallback = Callable[[bytes], object]


class SimulatedNotificationPlatform:
    """Notification platform whose answers are fixed up front.

    The device token is delivered from a timer thread, the way real platform
    callbacks arrive off the main loop. A ``token_delay`` of None means the
    token never arrives.
    """

    def __init__(
        self,
        status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
        grant_on_request: bool = True,
        token_delay: Optional[float] = 0.5,
        device_token: Optional[bytes] = None,
    ):
        self.status = status
        self.grant_on_request = grant_on_request
        self.token_delay = token_delay
        self.device_token = device_token or secrets.token_bytes(32)
        self.registrations = 0
        self._callback: Optional[TokenCallback] = None
        self._timers: List[threading.Timer] = []

    def attach(self, callback: TokenCallback) -> None:
        """Route delivered tokens to the host's registration callback."""
        self._callback = callback

    async def authorization_status(self) -> AuthorizationStatus:
        return self.status

    async def request_authorization(self) -> bool:
        self.status = AuthorizationStatus.AUTHORIZED if self.grant_on_request else AuthorizationStatus.DENIED
        return self.grant_on_request

    def register_for_remote_notifications(self) -> None:
        self.registrations += 1
        if self.token_delay is None:
            logger.debug("Simulated platform will not deliver a token")
            return
        timer = threading.Timer(self.token_delay, self._deliver)
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def _deliver(self) -> None:
        if self._callback is None:
            logger.warning("Simulated token ready but no callback attached")
            return
        self._callback(self.device_token)

    def cancel(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()


class SimulatedAttribution:
    """Blocking attribution lookup returning a fixed token after a delay."""

    def __init__(self, token: Optional[str] = None, delay: float = 0.0, fail: bool = False):
        self.token = token
        self.delay = delay
        self.fail = fail
        self.calls = 0

    def __call__(self) -> Optional[str]:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("attribution service unavailable")
        return self.token
