from launchgate.shared.domain.gate.redirect_gate import HostContinuation, PresentationSurface, RedirectGate

__all__ = ["HostContinuation", "PresentationSurface", "RedirectGate"]
