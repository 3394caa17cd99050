"""Deadline-bounded signal collection.

`DeadlineJoinCoordinator.collect` fans out to the push-token and attribution
sources and joins them against one shared deadline. A `JoinSession` owns the
accumulator; whichever path closes it first (last slot resolving, or the
deadline timer) is the only one that delivers a result.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from launchgate.shared.core.configuration import CollectionConfig
from launchgate.shared.core.errors import (
    LaunchGateError,
    LookupFailure,
    PermissionDenied,
    RegistrationFailed,
    SourceTimeout,
)
from launchgate.shared.core.event_bus import EventPayload, Subscription
from launchgate.shared.domain.models import DeviceSignals
from launchgate.shared.infrastructure.persistence.launch_state_store import LaunchStateStore
from launchgate.shared.infrastructure.signals.attribution import AttributionSource
from launchgate.shared.infrastructure.signals.push_token import PushTokenSource

logger = logging.getLogger(__name__)

SLOT_PUSH_TOKEN = "push_token"
SLOT_ATTRIBUTION = "attribution"

SlotWriter = Callable[[DeviceSignals], None]


def assign(field: str, value: Any) -> SlotWriter:
    def write(signals: DeviceSignals) -> None:
        setattr(signals, field, value)
    return write


def normalize_bundle_id(bundle_id: Any) -> str:
    """Strings pass through untouched; anything else collapses to the empty identifier."""
    if not isinstance(bundle_id, str):
        return ""
    return bundle_id


class JoinSession:
    """Coordination state for one collection.

    Every path that can close the session (a slot resolving, the deadline
    firing, external cancellation) takes ``_lock`` and checks ``_completed``
    before touching the accumulator, so a result is delivered at most once and
    nothing writes to the signals after that. Slot resolution may be called
    from any thread; delivery always happens on the loop that started the
    session.
    """

    def __init__(self, signals: DeviceSignals, deadline: float):
        self.signals = signals
        self.deadline = deadline
        self.expired = False
        self.failures: List[LaunchGateError] = []

        self._pending: Dict[str, Optional[SlotWriter]] = {}
        self._completed = False
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._result: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._subscriptions: List[Subscription] = []

    def add_slot(self, name: str, on_timeout: Optional[SlotWriter] = None) -> None:
        """Declare a pending slot; ``on_timeout`` fills it if the deadline wins."""
        if self._result is not None:
            raise RuntimeError("slots must be added before the session starts")
        self._pending[name] = on_timeout

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def pending(self) -> frozenset:
        with self._lock:
            return frozenset(self._pending)

    def start(self) -> None:
        """Arm the deadline on the running loop."""
        self._loop = asyncio.get_running_loop()
        self._result = self._loop.create_future()
        self._timer = self._loop.call_later(self.deadline, self.expire)
        if not self._pending:
            with self._lock:
                self._completed = True
                snapshot = self.signals.model_copy()
            self._settle(snapshot)

    def resolve(self, slot: str, writer: Optional[SlotWriter] = None) -> bool:
        """Resolve one slot. Returns False when the session is already closed."""
        with self._lock:
            if self._completed or slot not in self._pending:
                return False
            del self._pending[slot]
            if writer is not None:
                writer(self.signals)
            if self._pending:
                return True
            self._completed = True
            snapshot = self.signals.model_copy()
        self._settle(snapshot)
        return True

    def expire(self) -> bool:
        """Deadline path: fill the unresolved slots with their timeout values and close."""
        with self._lock:
            if self._completed:
                return False
            self._completed = True
            self.expired = True
            for slot, on_timeout in self._pending.items():
                self.failures.append(SourceTimeout(f"{slot} unresolved after {self.deadline}s"))
                if on_timeout is not None:
                    on_timeout(self.signals)
            self._pending.clear()
            snapshot = self.signals.model_copy()
        self._settle(snapshot)
        return True

    def abandon(self) -> bool:
        """Close without delivering anything (the collector was cancelled)."""
        with self._lock:
            if self._completed:
                return False
            self._completed = True
            self._pending.clear()
        if self._timer is not None:
            self._timer.cancel()
        if self._result is not None and not self._result.done():
            self._result.cancel()
        return True

    def record_failure(self, error: LaunchGateError) -> None:
        with self._lock:
            if not self._completed:
                self.failures.append(error)

    def track(self, subscription: Subscription) -> bool:
        """Hold a subscription until the session closes.

        Returns False if the session is already closed; the caller then owns
        the cancellation.
        """
        with self._lock:
            if self._completed:
                return False
            self._subscriptions.append(subscription)
            return True

    def _settle(self, snapshot: DeviceSignals) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._deliver(snapshot)
        else:
            self._loop.call_soon_threadsafe(self._deliver, snapshot)

    def _deliver(self, snapshot: DeviceSignals) -> None:
        if self._timer is not None:
            self._timer.cancel()
        if not self._result.done():
            self._result.set_result(snapshot)

    async def wait(self) -> DeviceSignals:
        if self._result is None:
            raise RuntimeError("session not started")
        return await self._result

    async def close(self) -> None:
        """Release every tracked subscription; safe to call on any exit path."""
        self.abandon()
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.cancel()


class DeadlineJoinCoordinator:
    """Collects device signals for the handshake under a shared deadline."""

    def __init__(
        self,
        push_source: PushTokenSource,
        attribution_source: AttributionSource,
        store: Optional[LaunchStateStore] = None,
        config: Optional[CollectionConfig] = None,
    ):
        self.push_source = push_source
        self.attribution_source = attribution_source
        self.store = store
        self.config = config or CollectionConfig()

    def _cached_push_token(self) -> Optional[str]:
        if self.store is None:
            return None
        try:
            return self.store.saved_push_token
        except Exception as e:
            logger.warning(f"Could not read cached push token: {e}")
            return None

    def _fallback_push_token(self) -> str:
        return self._cached_push_token() or self.config.fallback_push_token

    async def collect(self, bundle_id: Any, deadline: Optional[float] = None) -> DeviceSignals:
        """Gather signals; returns no later than ``deadline`` seconds after fan-out."""
        deadline = self.config.deadline_seconds if deadline is None else deadline
        session = JoinSession(DeviceSignals(bundle_identifier=normalize_bundle_id(bundle_id)), deadline)

        fallback = self._fallback_push_token()
        session.add_slot(SLOT_PUSH_TOKEN, on_timeout=assign("push_token", fallback))
        session.add_slot(SLOT_ATTRIBUTION)
        session.start()

        workers = [
            asyncio.create_task(self._acquire_push_token(session, fallback), name="launchgate-push-token"),
            asyncio.create_task(self._lookup_attribution(session), name="launchgate-attribution"),
        ]
        try:
            signals = await session.wait()
        finally:
            await session.close()
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        for failure in session.failures:
            logger.info(f"Signal source degraded: {type(failure).__name__}: {failure}")
        logger.info(
            f"Signal collection finished (expired={session.expired}, "
            f"push_token={'set' if signals.push_token else 'none'}, "
            f"attribution={'set' if signals.attribution_token else 'none'})"
        )
        return signals

    def collect_then(
        self,
        bundle_id: Any,
        continuation: Callable[[DeviceSignals], None],
        deadline: Optional[float] = None,
    ) -> "asyncio.Task[DeviceSignals]":
        """Callback form of `collect`: ``continuation`` runs once with the result."""
        async def run() -> DeviceSignals:
            signals = await self.collect(bundle_id, deadline)
            continuation(signals)
            return signals

        return asyncio.create_task(run(), name="launchgate-collect")

    async def _acquire_push_token(self, session: JoinSession, fallback: str) -> None:
        if self.config.reuse_cached_push_token:
            cached = self._cached_push_token()
            if cached:
                session.resolve(SLOT_PUSH_TOKEN, assign("push_token", cached))
                return

        try:
            await self.push_source.require_permission()
        except PermissionDenied as e:
            session.record_failure(e)
            session.resolve(SLOT_PUSH_TOKEN, assign("push_token", fallback))
            return

        if session.completed:
            return

        async def on_token(payload: EventPayload) -> None:
            token = payload.get("token")
            if token:
                session.resolve(SLOT_PUSH_TOKEN, assign("push_token", str(token)))

        def fail_registration(error: RegistrationFailed) -> None:
            session.record_failure(error)
            session.resolve(SLOT_PUSH_TOKEN, assign("push_token", fallback))

        async def on_registration_failed(payload: EventPayload) -> None:
            fail_registration(RegistrationFailed(str(payload.get("error") or "unknown error")))

        for subscribe, handler in (
            (self.push_source.subscribe, on_token),
            (self.push_source.subscribe_failures, on_registration_failed),
        ):
            subscription = await subscribe(handler)
            if not session.track(subscription):
                await subscription.cancel()
                return

        try:
            self.push_source.register()
        except Exception as e:
            logger.warning(f"Remote notification registration failed: {e}")
            fail_registration(RegistrationFailed(str(e)))

    async def _lookup_attribution(self, session: JoinSession) -> None:
        try:
            token = await self.attribution_source.fetch()
        except LookupFailure as e:
            session.record_failure(e)
            session.resolve(SLOT_ATTRIBUTION)
            return
        session.resolve(SLOT_ATTRIBUTION, assign("attribution_token", token))
