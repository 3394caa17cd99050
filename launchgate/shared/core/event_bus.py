from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeAlias

EventPayload: TypeAlias = Dict[str, Any]
EventHandler: TypeAlias = Callable[[EventPayload], Awaitable[None]]


class Subscription:
    """Handle for a single (topic, handler) registration.

    Cancelling is idempotent. Used as an async context manager the
    registration is released on every exit path.
    """

    def __init__(self, bus: "EventBus", topic: str, handler: EventHandler) -> None:
        self.bus = bus
        self.topic = topic
        self.handler = handler
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    async def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        await self.bus.unsubscribe(self.topic, self.handler)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cancel()


class EventBus:
    """Process-wide PubSub hub for launch events."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventHandler]] = defaultdict(list)
        # Lazy initialization to avoid event loop binding issues
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._logger = logging.getLogger(__name__)
        # Track pending tasks for deterministic waiting
        self._pending_tasks: set[asyncio.Task] = set()

    def _ensure_lock(self) -> asyncio.Lock:
        """Get or create lock for current event loop."""
        try:
            loop = asyncio.get_running_loop()

            # If we have a lock but it's for a different loop, recreate it
            if self._loop is not loop:
                self._lock = None
                self._loop = loop

            if self._lock is None:
                self._lock = asyncio.Lock()
        except RuntimeError:
            # No running event loop - create lock anyway (will be bound when used)
            if self._lock is None:
                self._lock = asyncio.Lock()

        return self._lock

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Pin the loop that `publish_threadsafe` delivers onto."""
        if self._loop is not loop:
            self._lock = None
        self._loop = loop

    async def subscribe(self, topic: str, handler: EventHandler) -> Subscription:
        """Register an async handler for a topic and return its cancellation handle."""
        async with self._ensure_lock():
            if handler not in self._subscribers[topic]:
                self._subscribers[topic].append(handler)
        return Subscription(self, topic, handler)

    async def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        """Remove a handler from a topic."""
        async with self._ensure_lock():
            if handler in self._subscribers.get(topic, []):
                self._subscribers[topic].remove(handler)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, []))

    async def publish(self, topic: str, payload: EventPayload) -> None:
        """Publish an event to all subscribers."""
        async with self._ensure_lock():
            handlers = list(self._subscribers.get(topic, []))

        if not handlers:
            self._logger.debug(f"No subscribers for topic '{topic}'")
            return

        self._logger.debug(f"Publishing to topic '{topic}' with {len(handlers)} handler(s)")
        for handler in handlers:
            task = asyncio.create_task(self._safe_dispatch(topic, handler, payload))
            self._pending_tasks.add(task)
            task.add_done_callback(self._pending_tasks.discard)

    def publish_threadsafe(self, topic: str, payload: EventPayload) -> concurrent.futures.Future:
        """Publish from any thread by scheduling onto the bound event loop.

        Platform callbacks (token registration and the like) are delivered on
        worker threads; handlers still only ever run on the loop.

        Raises:
            RuntimeError: If no loop has been bound yet
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            raise RuntimeError("EventBus has no running loop bound; call bind_loop() first")
        return asyncio.run_coroutine_threadsafe(self.publish(topic, payload), loop)

    async def wait_until_idle(self, timeout: float = 60.0) -> bool:
        """Wait for all pending event handlers to complete.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            True if all tasks completed, False if timeout reached
        """
        if not self._pending_tasks:
            return True

        self._logger.debug(f"EventBus: Waiting for {len(self._pending_tasks)} pending tasks...")

        start_time = asyncio.get_running_loop().time()
        while self._pending_tasks:
            if asyncio.get_running_loop().time() - start_time > timeout:
                self._logger.warning(f"EventBus: Timeout reached while waiting for {len(self._pending_tasks)} tasks")
                return False

            # Handlers may publish again, so loop until the set drains
            await asyncio.gather(*list(self._pending_tasks), return_exceptions=True)
            await asyncio.sleep(0)

        return True

    async def _safe_dispatch(
        self,
        topic: str,
        handler: EventHandler,
        payload: EventPayload,
    ) -> None:
        """Dispatch wrapper to keep one handler failure from stopping the bus."""
        handler_name = getattr(handler, "__name__", str(handler))
        self._logger.debug(f"Dispatching to handler '{handler_name}' for topic '{topic}'")
        try:
            await handler(payload)
        except Exception as exc:
            self._logger.exception(
                f"EventBus handler error in '{handler_name}' for topic '{topic}'",
                exc_info=exc,
            )
