"""Host application glue: launch wiring, surface state and a local harness."""

from .app import LaunchHost
from .state import SurfaceState

__all__ = ["LaunchHost", "SurfaceState"]
