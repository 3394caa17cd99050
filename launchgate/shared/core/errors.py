"""Failure taxonomy for the launch handshake.

None of these reach the host application. Each is raised at the seam where
the failure happens and absorbed at the component boundary, where it is
logged and mapped onto a fallback value or the continue outcome.
"""

from __future__ import annotations


class LaunchGateError(Exception):
    """Base class for launch handshake failures."""


class PermissionDenied(LaunchGateError):
    """Notification permission was refused or could not be determined."""


class SourceTimeout(LaunchGateError):
    """The shared deadline elapsed before a signal source resolved."""


class LookupFailure(LaunchGateError):
    """The attribution lookup raised or returned an unusable value."""


class TransportFailure(LaunchGateError):
    """The handshake request failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(LaunchGateError):
    """The response body cannot be used as a redirect address."""


class RegistrationFailed(LaunchGateError):
    """The platform reported that remote notification registration failed."""
