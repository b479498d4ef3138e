"""
Error taxonomy for the dashboard session and polling pipeline.

- AuthError: fatal to the device task that sees it (bad credentials,
  unknown login failure, or a session that keeps expiring right after login).
- SessionExpired / TransientServerError: raised by a single HTTP exchange and
  consumed by the SessionClient retry loop; callers never see them.
- UnexpectedStatus: describes a tolerated non-2xx response; logged, not raised.
- MalformedPayload: a body that does not parse into the expected schema.
- StartupStateError: the cookie snapshot could not be loaded.
- ShutdownRequested: a retry wait was cut short by the shutdown event.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from enum import Enum


class GrowattError(Exception):
    """Base class for every error raised by this package."""


class AuthFailure(str, Enum):
    """Reason attached to an :class:`AuthError`."""

    INVALID_CREDENTIALS = "invalid-credentials"
    UNKNOWN = "unknown"
    SESSION_UNSTABLE = "session-unstable"


class AuthError(GrowattError):
    """Login failed or the session cannot be kept alive.

    Args:
        reason: Which kind of authentication failure occurred.
        detail: Optional human-readable context.
    """

    def __init__(self, reason: AuthFailure, detail: str = "") -> None:
        self.reason = reason
        message = f"authentication failed ({reason.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SessionExpired(GrowattError):
    """The server redirected to its login page."""


class TransientServerError(GrowattError):
    """The server answered with a 5xx status or the transport failed."""

    def __init__(self, status_code: int | None, detail: str = "") -> None:
        self.status_code = status_code
        super().__init__(detail or f"transient server failure (HTTP {status_code})")


class UnexpectedStatus(GrowattError):
    """A non-success status that is tolerated and only logged."""

    def __init__(self, status_code: int, path: str) -> None:
        self.status_code = status_code
        self.path = path
        super().__init__(f"unexpected HTTP {status_code} for {path}")


class MalformedPayload(GrowattError):
    """The response body does not match the schema expected for an endpoint."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        super().__init__(f"malformed payload from {path}: {detail}")


class StartupStateError(GrowattError):
    """Persisted startup state (cookie snapshot) is unreadable."""


class ShutdownRequested(GrowattError):
    """Shutdown was signalled while a request was waiting to be retried."""
