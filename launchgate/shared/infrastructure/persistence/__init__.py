"""Persistence adapters (DuckDB)."""

from launchgate.shared.infrastructure.persistence.launch_state_store import (
    KEY_FIRST_LAUNCH,
    KEY_PUSH_TOKEN,
    KEY_REDIRECT_ADDRESS,
    LaunchStateStore,
)

__all__ = ["LaunchStateStore", "KEY_FIRST_LAUNCH", "KEY_PUSH_TOKEN", "KEY_REDIRECT_ADDRESS"]
