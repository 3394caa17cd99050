"""Value types shared by the collection, handshake and gate layers."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DeviceSignals(BaseModel):
    """Signals gathered during one collection session.

    Mutable while the session is open; the session hands out a frozen copy
    when it closes.
    """
    model_config = ConfigDict(extra='forbid')

    bundle_identifier: str = Field(default="", description="Host application bundle identifier")
    push_token: Optional[str] = Field(default=None, description="Hex push registration token")
    attribution_token: Optional[str] = Field(default=None, description="Opaque install-attribution token")


class LaunchState(BaseModel):
    """Snapshot of the persisted launch fields."""
    model_config = ConfigDict(extra='forbid', frozen=True)

    first_launch_completed: bool = False
    saved_redirect_address: Optional[str] = None
    saved_push_token: Optional[str] = None


class HandshakeOutcome(BaseModel):
    """Result of the handshake; no address means continue the normal flow."""
    model_config = ConfigDict(extra='forbid', frozen=True)

    redirect_address: Optional[str] = None

    @property
    def should_redirect(self) -> bool:
        return bool(self.redirect_address)

    @classmethod
    def proceed(cls) -> "HandshakeOutcome":
        return cls()


class GateState(str, Enum):
    """States of the redirect gate."""
    NOT_LAUNCHED_BEFORE = "not_launched_before"
    FIRST_LAUNCH_PROCESSING = "first_launch_processing"
    REPLAYING_SAVED_STATE = "replaying_saved_state"
    CONTINUING = "continuing"
    REDIRECTING = "redirecting"

    @property
    def is_terminal(self) -> bool:
        return self in (GateState.CONTINUING, GateState.REDIRECTING)
