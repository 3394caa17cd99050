"""DuckDB-backed launch state store.

A small key/value table holding the first-launch marker, the saved redirect
address and the last push token the platform delivered.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

import duckdb

from launchgate.shared.core import events
from launchgate.shared.core.event_bus import EventBus, EventPayload, Subscription
from launchgate.shared.core.service_registry import register_cleanup_handler, unregister_cleanup_handler
from launchgate.shared.domain.models import LaunchState

logger = logging.getLogger(__name__)

KEY_FIRST_LAUNCH = "launchgate.first_launch_completed"
KEY_REDIRECT_ADDRESS = "launchgate.redirect_address"
KEY_PUSH_TOKEN = "launchgate.push_token"

_TRUE = "1"
_FALSE = "0"


class LaunchStateStore:
    """Persists launch flags and values in DuckDB.

    All reads and writes go through one connection guarded by a lock, so the
    token relay may write from a platform thread while the gate reads on the
    event loop.
    """

    def __init__(self, db_path: Optional[str] = None, event_bus: Optional[EventBus] = None):
        self.db_path = db_path or ":memory:"
        self.event_bus = event_bus
        self.conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.Lock()
        self._token_subscription: Optional[Subscription] = None

    async def start(self) -> None:
        """Open the database and start persisting relayed push tokens."""
        self.open()
        if self.event_bus is not None and self._token_subscription is None:
            self._token_subscription = await self.event_bus.subscribe(
                events.TOPIC_PUSH_TOKEN_RECEIVED,
                self.handle_push_token_received,
            )

    def open(self) -> None:
        if self.conn is not None:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(self.db_path)
        self._create_schema()
        register_cleanup_handler(self.close)
        logger.info(f"Launch state database initialized: {self.db_path}")

    def _create_schema(self) -> None:
        self._require_conn().execute("""
            CREATE TABLE IF NOT EXISTS launch_state (
                key VARCHAR PRIMARY KEY,
                value VARCHAR,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def _require_conn(self) -> duckdb.DuckDBPyConnection:
        if self.conn is None:
            raise RuntimeError("LaunchStateStore is not open; call start() or open() first")
        return self.conn

    async def aclose(self) -> None:
        if self._token_subscription is not None:
            await self._token_subscription.cancel()
            self._token_subscription = None
        self.close()

    def close(self) -> None:
        with self._lock:
            if self.conn is None:
                return
            try:
                self.conn.close()
            except duckdb.Error as e:
                logger.warning(f"Error closing launch state database: {e}")
            self.conn = None
        unregister_cleanup_handler(self.close)

    # --- Scalar accessors ---

    def get_string(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._require_conn().execute(
                "SELECT value FROM launch_state WHERE key = ?", [key]
            ).fetchone()
        return row[0] if row else None

    def set_string(self, key: str, value: Optional[str]) -> None:
        with self._lock:
            self._require_conn().execute("""
                INSERT INTO launch_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT (key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """, [key, value])

    def get_bool(self, key: str) -> bool:
        return self.get_string(key) == _TRUE

    def set_bool(self, key: str, value: bool) -> None:
        self.set_string(key, _TRUE if value else _FALSE)

    # --- Launch fields ---

    @property
    def first_launch_completed(self) -> bool:
        return self.get_bool(KEY_FIRST_LAUNCH)

    def mark_first_launch_completed(self) -> None:
        self.set_bool(KEY_FIRST_LAUNCH, True)

    @property
    def saved_redirect_address(self) -> Optional[str]:
        return self.get_string(KEY_REDIRECT_ADDRESS) or None

    def save_redirect_address(self, address: str) -> None:
        self.set_string(KEY_REDIRECT_ADDRESS, address)

    @property
    def saved_push_token(self) -> Optional[str]:
        return self.get_string(KEY_PUSH_TOKEN) or None

    def save_push_token(self, token: str) -> None:
        self.set_string(KEY_PUSH_TOKEN, token)

    def snapshot(self) -> LaunchState:
        return LaunchState(
            first_launch_completed=self.first_launch_completed,
            saved_redirect_address=self.saved_redirect_address,
            saved_push_token=self.saved_push_token,
        )

    # --- Event handlers ---

    async def handle_push_token_received(self, payload: EventPayload) -> None:
        """Persist a relayed push token so later sessions can fall back to it."""
        token = payload.get("token")
        if not token:
            return
        try:
            self.save_push_token(str(token))
            logger.debug("Persisted push token")
        except RuntimeError as e:
            # Store closed while the event was in flight
            logger.warning(f"Dropped push token: {e}")
        except duckdb.Error as e:
            logger.error(f"Error persisting push token: {e}")
