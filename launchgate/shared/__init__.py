"""
launchgate Shared Kernel
========================

Architecture:
- core: EventBus, configuration, error taxonomy, exit hooks
- infrastructure: Technical adapters (DuckDB state, handshake endpoint, signal sources)
- domain: Business logic (signal collection, redirect gate)
"""

__version__ = "0.3.0"

__all__ = []
