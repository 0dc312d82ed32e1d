"""Exception hierarchy for authmimic.

Every error carries the fixture stage it was raised from so that a test which
cannot establish its identity reports where it failed instead of timing out.
"""

from __future__ import annotations

from authmimic.types import Stage


class AuthMimicError(Exception):
    """Base exception for all authmimic errors."""

    default_stage: Stage | None = None

    def __init__(self, message: str, *, stage: Stage | None = None) -> None:
        super().__init__(message)
        self.detail = message
        self.stage = stage or self.default_stage

    def __str__(self) -> str:
        if self.stage is None:
            return self.detail
        return f"[{self.stage}] {self.detail}"


class ConfigError(AuthMimicError):
    """Raised when configuration is invalid or incomplete."""


class SynthesisError(AuthMimicError):
    """Raised when a session cannot be synthesized for an identity."""

    default_stage = Stage.SYNTHESIS


class RouteInstallError(AuthMimicError):
    """Raised when route rules cannot be registered against a context."""

    default_stage = Stage.ROUTE_INSTALL


class FixtureError(AuthMimicError):
    """Raised when a route rule's response builder fails."""

    default_stage = Stage.ROUTE_INSTALL

    def __init__(self, message: str, *, rule: str = "", url: str = "") -> None:
        self.rule = rule
        self.url = url
        super().__init__(message)


class CookieInstallError(AuthMimicError):
    """Raised when cookies or storage cannot be written to a context."""

    default_stage = Stage.COOKIE_INSTALL


class OrderingError(AuthMimicError):
    """Raised when auth state is installed after the page already navigated."""

    default_stage = Stage.COOKIE_INSTALL


class NavigationError(AuthMimicError):
    """Raised when the post-login navigation fails."""

    default_stage = Stage.NAVIGATION


class LiveLoginError(AuthMimicError):
    """Raised when a live login fails for a reason other than transport or credentials."""

    default_stage = Stage.LIVE_LOGIN

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class LiveTransportError(LiveLoginError):
    """Raised when the live backend is unreachable or does not answer in time."""


class LiveAuthenticationError(LiveLoginError):
    """Raised when the live backend rejects the credentials."""


class RoleMismatchError(LiveAuthenticationError):
    """Raised when the backend authenticates the account with another role."""

    def __init__(self, message: str, *, requested: str, actual: str) -> None:
        self.requested = requested
        self.actual = actual
        super().__init__(message)
